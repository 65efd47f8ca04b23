import logging
import os
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Query, Response, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from browse import BrowseState, CourseTile, Crumb, DepartmentTile, FilterOptions
from catalog import Catalog
from database import clear_all_data, export_snapshot, get_store
from errors import Outcome
from schemas import (
    Course,
    Department,
    Lecturer,
    PublicUser,
    Resource,
    ResourceSummary,
    SearchFilters,
    SearchHistoryEntry,
    User,
)
from search import SearchCriteria

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Academic Resource Hub")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.catalog = None


# ---------------------------
# Dependencies
# ---------------------------

def get_catalog() -> Catalog:
    if app.state.catalog is None:
        app.state.catalog = Catalog.open(get_store())
    return app.state.catalog


def raise_for(outcome: Outcome) -> Outcome:
    if not outcome.ok:
        raise HTTPException(status_code=outcome.error.status_code, detail=outcome.message)
    return outcome


def get_current_user(catalog: Catalog = Depends(get_catalog)) -> User:
    return raise_for(catalog.session.require_user()).value


def public_user(user: User) -> PublicUser:
    return PublicUser(**user.model_dump(exclude={"password_salt", "password_hash"}))


# ---------------------------
# Request/response models
# ---------------------------

class RegisterRequest(BaseModel):
    name: str
    email: str
    department: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class AuthResponse(BaseModel):
    message: str
    user: PublicUser


class ResourceDetail(BaseModel):
    resource: ResourceSummary
    department: str
    course_code: str
    course_name: str
    lecturer: str
    uploader: str
    file_size_label: str
    can_delete: bool


class SearchResponse(BaseModel):
    query: str
    count: int
    results: List[ResourceSummary]


class LecturerFilterRequest(BaseModel):
    lecturer: Optional[str] = None


class BrowseViewOut(BaseModel):
    level: str
    state: BrowseState
    departments: List[DepartmentTile] = []
    courses: List[CourseTile] = []
    resources: List[ResourceSummary] = []
    is_empty: bool


class Stats(BaseModel):
    total_users: int
    total_resources: int
    total_departments: int
    my_uploads: int
    storage_used: int


# ---------------------------
# Health & schema endpoints
# ---------------------------

@app.get("/")
def read_root():
    return {"message": "Academic Resource Hub API"}


@app.get("/schema")
def get_schema():
    return {
        "users": User.model_json_schema(),
        "resources": Resource.model_json_schema(),
        "departments": Department.model_json_schema(),
        "courses": Course.model_json_schema(),
        "lecturers": Lecturer.model_json_schema(),
    }


@app.get("/test")
def test_store(catalog: Catalog = Depends(get_catalog)):
    response = {
        "backend": "✅ Running",
        "store": catalog.store.name,
        "namespace": catalog.store.namespace,
        "collections": [],
    }
    try:
        response["collections"] = sorted(catalog.store.keys())[:10]
        response["status"] = "✅ Connected & Working"
    except Exception as e:
        response["status"] = f"⚠️  Connected but Error: {str(e)[:50]}"

    response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
    response["database_name"] = "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set"
    return response


# ---------------------------
# Auth routes
# ---------------------------

@app.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(req: RegisterRequest, catalog: Catalog = Depends(get_catalog)):
    outcome = raise_for(catalog.session.register(req.name, req.email, req.department, req.password))
    return {"message": outcome.message, "user": public_user(outcome.value)}


@app.post("/auth/login", response_model=AuthResponse)
def login(req: LoginRequest, catalog: Catalog = Depends(get_catalog)):
    outcome = raise_for(catalog.session.login(req.email, req.password))
    return {"message": outcome.message, "user": public_user(outcome.value)}


@app.post("/auth/logout")
def logout(catalog: Catalog = Depends(get_catalog)):
    catalog.session.logout()
    return {"ok": True}


@app.get("/auth/me", response_model=PublicUser)
def me(user: User = Depends(get_current_user)):
    return public_user(user)


# ---------------------------
# Reference data routes
# ---------------------------

@app.get("/departments", response_model=List[Department])
def list_departments(catalog: Catalog = Depends(get_catalog)):
    return catalog.repos.departments.list()


@app.get("/departments/{department_id}/courses", response_model=List[Course])
def list_courses(department_id: str, catalog: Catalog = Depends(get_catalog)):
    return catalog.repos.courses.by_department(department_id)


@app.get("/departments/{department_id}/lecturers", response_model=List[Lecturer])
def list_lecturers(department_id: str, catalog: Catalog = Depends(get_catalog)):
    return catalog.repos.lecturers.by_department(department_id)


# ---------------------------
# Resource routes
# ---------------------------

@app.get("/resources/recent", response_model=List[ResourceSummary])
def recent_resources(limit: int = Query(8, ge=1, le=100), catalog: Catalog = Depends(get_catalog)):
    return catalog.repos.resources.recent(limit)


@app.get("/resources/{resource_id}", response_model=ResourceDetail)
def get_resource(resource_id: str, catalog: Catalog = Depends(get_catalog)):
    return raise_for(catalog.describe(resource_id)).value


@app.post("/resources", response_model=ResourceSummary, status_code=201)
async def upload_resource(
    title: str = Form(""),
    type: str = Form(""),
    department_id: str = Form(""),
    course_id: str = Form(""),
    lecturer_id: str = Form(""),
    year: str = Form(""),
    description: str = Form(""),
    file: UploadFile = File(...),
    catalog: Catalog = Depends(get_catalog),
):
    fields = {
        "title": title,
        "type": type,
        "department_id": department_id,
        "course_id": course_id,
        "lecturer_id": lecturer_id,
        "year": year,
        "description": description,
    }
    outcome = await catalog.upload_async(fields, file.filename or "", file.content_type or "", file.read)
    return raise_for(outcome).value


@app.get("/resources/{resource_id}/download")
def download_resource(resource_id: str, catalog: Catalog = Depends(get_catalog)):
    payload = raise_for(catalog.download(resource_id)).value
    resource = payload["resource"]
    return Response(
        content=payload["data"],
        media_type=payload["content_type"],
        headers={"Content-Disposition": f'attachment; filename="{resource.file_name}"'},
    )


@app.delete("/resources/{resource_id}")
def delete_resource(resource_id: str, catalog: Catalog = Depends(get_catalog)):
    raise_for(catalog.delete(resource_id))
    return {"ok": True}


# ---------------------------
# Search routes
# ---------------------------

@app.get("/search", response_model=SearchResponse)
def search(
    q: str = "",
    department: Optional[str] = None,
    type: Optional[str] = None,
    year: Optional[str] = None,
    catalog: Catalog = Depends(get_catalog),
):
    filters = SearchFilters(department=department, type=type, year=year)
    results = catalog.query.search(q, filters)
    if q.strip() or any(filters.model_dump().values()):
        catalog.query.record_search(q, filters, len(results))
    return {"query": q.strip(), "count": len(results), "results": results}


@app.post("/search/advanced", response_model=SearchResponse)
def advanced_search(criteria: SearchCriteria, catalog: Catalog = Depends(get_catalog)):
    results = catalog.query.advanced_search(criteria)
    return {"query": (criteria.query or "").strip(), "count": len(results), "results": results}


@app.get("/search/suggestions", response_model=List[str])
def suggestions(q: str = "", catalog: Catalog = Depends(get_catalog)):
    return catalog.query.suggest(q)


@app.get("/search/history", response_model=List[SearchHistoryEntry])
def search_history(catalog: Catalog = Depends(get_catalog)):
    return catalog.query.history()


@app.delete("/search/history")
def clear_search_history(catalog: Catalog = Depends(get_catalog)):
    catalog.query.clear_history()
    return {"ok": True}


# ---------------------------
# Browse routes
# ---------------------------

@app.get("/browse", response_model=BrowseViewOut)
def browse_view(catalog: Catalog = Depends(get_catalog)):
    return catalog.navigator.view()


@app.get("/browse/breadcrumb", response_model=List[Crumb])
def browse_breadcrumb(catalog: Catalog = Depends(get_catalog)):
    return catalog.navigator.breadcrumb()


@app.get("/browse/filters", response_model=FilterOptions)
def browse_filter_options(catalog: Catalog = Depends(get_catalog)):
    return catalog.navigator.filter_options()


@app.post("/browse/reset", response_model=BrowseViewOut)
def browse_reset(catalog: Catalog = Depends(get_catalog)):
    catalog.navigator.reset()
    return catalog.navigator.view()


@app.post("/browse/departments/{department_id}", response_model=BrowseViewOut)
def browse_department(department_id: str, catalog: Catalog = Depends(get_catalog)):
    catalog.navigator.enter_department(department_id)
    return catalog.navigator.view()


@app.post("/browse/courses/{course_id}", response_model=BrowseViewOut)
def browse_course(course_id: str, catalog: Catalog = Depends(get_catalog)):
    catalog.navigator.enter_course(course_id)
    return catalog.navigator.view()


@app.post("/browse/lecturer", response_model=BrowseViewOut)
def browse_lecturer(req: LecturerFilterRequest, catalog: Catalog = Depends(get_catalog)):
    catalog.navigator.set_lecturer(req.lecturer)
    return catalog.navigator.view()


@app.post("/browse/filters", response_model=BrowseViewOut)
def browse_apply_filters(state: BrowseState, catalog: Catalog = Depends(get_catalog)):
    catalog.navigator.apply_filters(state.department, state.course, state.lecturer)
    return catalog.navigator.view()


# ---------------------------
# Dashboard & data routes
# ---------------------------

@app.get("/stats", response_model=Stats)
def stats(catalog: Catalog = Depends(get_catalog)):
    return catalog.stats()


@app.get("/export")
def export_data(catalog: Catalog = Depends(get_catalog)):
    return export_snapshot(catalog.store)


@app.post("/admin/clear")
def clear_data(catalog: Catalog = Depends(get_catalog)):
    clear_all_data(catalog.store)
    catalog.navigator.reset()
    return {"ok": True}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
