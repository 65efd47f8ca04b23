"""
Database Schemas

Pydantic models for the records kept in the key-value store.
Each collection is a flat list of these records, stored and rewritten as a unit:
- User -> "users" collection
- Resource -> "resources" collection
- Department -> "departments" collection
- Course -> "courses" collection
- Lecturer -> "lecturers" collection

Draft models carry the caller-supplied fields; repositories fill in ids and
timestamps when the record is added.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ResourceType = Literal["exam", "notes", "assignment", "textbook", "other"]
Severity = Literal["success", "error", "warning"]

RESOURCE_TYPES = ("exam", "notes", "assignment", "textbook", "other")


# ---------- Reference data ----------
class Department(BaseModel):
    id: str
    name: str = Field(..., description="Department name (e.g., Computer Science)")
    icon: str = Field("", description="Opaque display token")


class Course(BaseModel):
    id: str
    department_id: str
    code: str = Field(..., description="Course code e.g., CS101")
    name: str
    level: int = Field(100, description="Numeric tier (100, 200, ...)")


class Lecturer(BaseModel):
    id: str
    department_id: str
    name: str
    title: str = ""


# ---------- Users ----------
class UserDraft(BaseModel):
    name: str
    email: str
    department: str
    password_salt: str
    password_hash: str


class User(UserDraft):
    """
    Users collection schema
    Collection name: "users"
    """
    id: str
    created_at: datetime
    last_login: Optional[datetime] = None


class PublicUser(BaseModel):
    id: str
    name: str
    email: str
    department: str
    created_at: datetime
    last_login: Optional[datetime] = None


# ---------- Resources ----------
class ResourceDraft(BaseModel):
    title: str
    description: str = ""
    type: ResourceType
    department_id: str
    course_id: str
    lecturer_id: str
    year: str = Field(..., description="Academic year, e.g. 2024")
    file_name: str
    file_size: int = Field(0, ge=0, description="Size in bytes")
    file_type: str = Field("", description="MIME type")
    file_data: str = Field("", description="Inline data URL with its own MIME type")
    uploaded_by: str = Field(..., description="Owner user id")


class Resource(ResourceDraft):
    """
    Resources collection schema
    Collection name: "resources"
    """
    id: str
    upload_date: datetime
    downloads: int = Field(0, ge=0)


class ResourceSummary(BaseModel):
    """Resource as returned to clients, without the inline payload."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str = ""
    type: ResourceType
    department_id: str
    course_id: str
    lecturer_id: str
    year: str
    file_name: str
    file_size: int
    file_type: str
    uploaded_by: str
    upload_date: datetime
    downloads: int


# ---------- Search ----------
class SearchFilters(BaseModel):
    """Simple filters for the ranked search (not a collection)."""
    department: Optional[str] = None
    type: Optional[str] = None
    year: Optional[str] = None


class SearchHistoryEntry(BaseModel):
    query: str
    filters: dict = {}
    timestamp: datetime
    results_count: int = 0
