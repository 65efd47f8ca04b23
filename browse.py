"""
Hierarchical browse state: Department -> Course -> Resource list.

The lecturer slot is a filter on the course level, not a depth level.
Ids that no longer resolve are treated as absent when building breadcrumbs.
"""

from typing import List, Optional

from pydantic import BaseModel, computed_field

from repositories import Repositories
from schemas import Course, Department, Lecturer, Resource

ROOT_LABEL = "All Departments"


class BrowseState(BaseModel):
    department: Optional[str] = None
    course: Optional[str] = None
    lecturer: Optional[str] = None


class DepartmentTile(BaseModel):
    department: Department
    resource_count: int


class CourseTile(BaseModel):
    course: Course
    resource_count: int
    lecturer_label: Optional[str] = None


class BrowseView(BaseModel):
    level: str  # "root" | "department" | "course"
    state: BrowseState
    departments: List[DepartmentTile] = []
    courses: List[CourseTile] = []
    resources: List[Resource] = []

    @computed_field
    @property
    def is_empty(self) -> bool:
        if self.level == "root":
            return not self.departments
        if self.level == "department":
            return not self.courses
        return not self.resources


class Crumb(BaseModel):
    label: str
    state: BrowseState


class Option(BaseModel):
    value: str
    label: str


class FilterOptions(BaseModel):
    departments: List[Option]
    courses: List[Option]
    lecturers: List[Option]


def lecturer_label(lecturer: Optional[Lecturer]) -> Optional[str]:
    if lecturer is None:
        return None
    return f"{lecturer.title} {lecturer.name}".strip()


class BrowseNavigator:
    def __init__(self, repos: Repositories):
        self.repos = repos
        self.state = BrowseState()

    # ---------- transitions ----------
    def reset(self) -> BrowseState:
        self.state = BrowseState()
        return self.state

    def enter_department(self, department_id: str) -> BrowseState:
        self.state = BrowseState(department=department_id or None)
        return self.state

    def enter_course(self, course_id: str) -> BrowseState:
        department = self.state.department
        if department is None:
            course = self.repos.courses.find_by_id(course_id)
            department = course.department_id if course else None
        self.state = BrowseState(department=department, course=course_id or None)
        return self.state

    def set_lecturer(self, lecturer_id: Optional[str]) -> BrowseState:
        self.state = self.state.model_copy(update={"lecturer": lecturer_id or None})
        return self.state

    def apply_filters(self, department: Optional[str] = None, course: Optional[str] = None,
                      lecturer: Optional[str] = None) -> BrowseState:
        """Dropdown handler: each slot is set as given, empty means "All"."""
        self.state = BrowseState(department=department or None, course=course or None,
                                 lecturer=lecturer or None)
        return self.state

    # ---------- views ----------
    @property
    def level(self) -> str:
        if not self.state.department:
            return "root"
        if not self.state.course:
            return "department"
        return "course"

    def view(self) -> BrowseView:
        level = self.level
        view = BrowseView(level=level, state=self.state)
        if level == "root":
            view.departments = self._department_tiles()
        elif level == "department":
            view.courses = self._course_tiles(self.state.department)
        else:
            view.resources = self.course_resources()
        return view

    def _department_tiles(self) -> List[DepartmentTile]:
        resources = self.repos.resources.list()
        return [
            DepartmentTile(department=d, resource_count=sum(1 for r in resources if r.department_id == d.id))
            for d in self.repos.departments.list()
        ]

    def _course_tiles(self, department_id: str) -> List[CourseTile]:
        resources = self.repos.resources.list()
        lecturers = self.repos.lecturers.by_department(department_id)
        # Simplification: the department's first lecturer stands in for every course
        label = lecturer_label(lecturers[0]) if lecturers else None
        return [
            CourseTile(course=c, resource_count=sum(1 for r in resources if r.course_id == c.id),
                       lecturer_label=label)
            for c in self.repos.courses.by_department(department_id)
        ]

    def course_resources(self) -> List[Resource]:
        if not self.state.course:
            return []
        resources = self.repos.resources.by_course(self.state.course)
        if self.state.lecturer:
            resources = [r for r in resources if r.lecturer_id == self.state.lecturer]
        return resources

    # ---------- breadcrumb and dropdowns ----------
    def breadcrumb(self) -> List[Crumb]:
        crumbs = [Crumb(label=ROOT_LABEL, state=BrowseState())]
        dept = self.repos.departments.find_by_id(self.state.department)
        if dept is None:
            return crumbs
        crumbs.append(Crumb(label=dept.name, state=BrowseState(department=dept.id)))
        course = self.repos.courses.find_by_id(self.state.course)
        if course is not None:
            crumbs.append(Crumb(label=course.code, state=BrowseState(department=dept.id, course=course.id)))
        return crumbs

    def filter_options(self) -> FilterOptions:
        department_id = self.state.department
        courses = self.repos.courses.by_department(department_id) if department_id else []
        lecturers = self.repos.lecturers.by_department(department_id) if department_id else []
        return FilterOptions(
            departments=[Option(value=d.id, label=d.name) for d in self.repos.departments.list()],
            courses=[Option(value=c.id, label=f"{c.code} - {c.name}") for c in courses],
            lecturers=[Option(value=lec.id, label=lecturer_label(lec)) for lec in lecturers],
        )
