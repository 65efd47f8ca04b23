"""
Typed accessors over the store's collections.

There is no cache: every call re-reads the whole collection from the store,
and every mutation rewrites it.
"""

import logging
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

import database
from database import BaseStore
from schemas import Course, Department, Lecturer, Resource, ResourceDraft, User, UserDraft
from utils import generate_id, now_utc

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class CollectionRepository(Generic[M]):
    key: str = ""
    model: Type[BaseModel] = BaseModel

    def __init__(self, store: BaseStore):
        self.store = store

    def _raw(self) -> List[Dict[str, Any]]:
        data = self.store.get(self.key)
        return data if isinstance(data, list) else []

    def list(self) -> List[M]:
        out: List[M] = []
        for record in self._raw():
            try:
                out.append(self.model.model_validate(record))
            except PydanticValidationError as e:
                logger.warning(f"Skipping malformed record in '{self.key}': {e.error_count()} error(s)")
        return out

    def find_by_id(self, record_id: Optional[str]) -> Optional[M]:
        if not record_id:
            return None
        for item in self.list():
            if item.id == record_id:
                return item
        return None

    def _where(self, **fields) -> List[M]:
        return [item for item in self.list() if all(getattr(item, k) == v for k, v in fields.items())]

    def _save(self, items: List[M]) -> bool:
        return self.store.set(self.key, [item.model_dump(mode="json") for item in items])

    def _append(self, item: M) -> Optional[M]:
        items = self.list()
        items.append(item)
        return item if self._save(items) else None

    def update(self, record_id: str, fields: Dict[str, Any]) -> bool:
        """Shallow merge of fields into one record; False if absent or not persisted."""
        items = self.list()
        for idx, item in enumerate(items):
            if item.id == record_id:
                merged = item.model_dump() | {k: v for k, v in fields.items() if k != "id"}
                try:
                    items[idx] = self.model.model_validate(merged)
                except PydanticValidationError as e:
                    logger.warning(f"Rejected update of {self.key}/{record_id}: {e.error_count()} error(s)")
                    return False
                return self._save(items)
        return False


class DepartmentRepository(CollectionRepository[Department]):
    key = database.DEPARTMENTS
    model = Department


class CourseRepository(CollectionRepository[Course]):
    key = database.COURSES
    model = Course

    def by_department(self, department_id: str) -> List[Course]:
        return self._where(department_id=department_id)


class LecturerRepository(CollectionRepository[Lecturer]):
    key = database.LECTURERS
    model = Lecturer

    def by_department(self, department_id: str) -> List[Lecturer]:
        return self._where(department_id=department_id)


class UserRepository(CollectionRepository[User]):
    key = database.USERS
    model = User

    def find_by_email(self, email: str) -> Optional[User]:
        wanted = (email or "").strip().lower()
        if not wanted:
            return None
        for user in self.list():
            if user.email.lower() == wanted:
                return user
        return None

    def add(self, draft: UserDraft) -> Optional[User]:
        stamp = now_utc()
        user = User(id=generate_id(), created_at=stamp, last_login=stamp, **draft.model_dump())
        return self._append(user)


class ResourceRepository(CollectionRepository[Resource]):
    key = database.RESOURCES
    model = Resource

    def add(self, draft: ResourceDraft) -> Optional[Resource]:
        resource = Resource(id=generate_id(), upload_date=now_utc(), downloads=0, **draft.model_dump())
        return self._append(resource)

    def update(self, record_id: str, fields: Dict[str, Any]) -> bool:
        # upload_date is immutable and downloads only moves through increment_downloads
        fields = {k: v for k, v in fields.items() if k not in ("upload_date", "downloads")}
        return super().update(record_id, fields)

    def increment_downloads(self, resource_id: str) -> bool:
        """Add one download; False if the id is absent or the write failed."""
        items = self.list()
        for item in items:
            if item.id == resource_id:
                item.downloads += 1
                return self._save(items)
        return False

    def remove(self, resource_id: str) -> bool:
        items = self.list()
        remaining = [item for item in items if item.id != resource_id]
        if len(remaining) == len(items):
            return False
        return self._save(remaining)

    def by_department(self, department_id: str) -> List[Resource]:
        return self._where(department_id=department_id)

    def by_course(self, course_id: str) -> List[Resource]:
        return self._where(course_id=course_id)

    def by_lecturer(self, lecturer_id: str) -> List[Resource]:
        return self._where(lecturer_id=lecturer_id)

    def by_user(self, user_id: str) -> List[Resource]:
        return self._where(uploaded_by=user_id)

    def recent(self, limit: int = 10) -> List[Resource]:
        return sorted(self.list(), key=lambda r: r.upload_date, reverse=True)[:max(limit, 0)]


class Repositories:
    """All five repositories over one store."""

    def __init__(self, store: BaseStore):
        self.store = store
        self.users = UserRepository(store)
        self.resources = ResourceRepository(store)
        self.departments = DepartmentRepository(store)
        self.courses = CourseRepository(store)
        self.lecturers = LecturerRepository(store)
