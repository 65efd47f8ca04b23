"""
The catalog context: one object that owns the store, the repositories, the
query engine, the browse navigator and the user session.

It also hosts the flows that span several components (upload, download,
delete, detail view, dashboard stats). Each flow returns an Outcome and
reports through the notifier.
"""

import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

import database
from auth import UserSession
from browse import BrowseNavigator, lecturer_label
from database import BaseStore
from errors import NotFoundError, Outcome, StorageCapacityError, ValidationError
from notify import Notifier, log_notifier
from repositories import Repositories
from schemas import RESOURCE_TYPES, ResourceDraft
from search import QueryEngine
from utils import decode_data_url, encode_data_url, format_file_size

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 10 * 1024 * 1024
ALLOWED_FILE_TYPES = (
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "image/jpeg",
    "image/jpg",
    "image/png",
)
REQUIRED_UPLOAD_FIELDS = (
    ("title", "Please enter a title"),
    ("type", "Please select a resource type"),
    ("department_id", "Please select a department"),
    ("course_id", "Please select a course"),
    ("lecturer_id", "Please select a lecturer"),
    ("year", "Please select an academic year"),
)
UNKNOWN = "Unknown"


class Catalog:
    def __init__(self, store: BaseStore, notify: Notifier = log_notifier):
        self.store = store
        self.notify = notify
        self.repos = Repositories(store)
        self.query = QueryEngine(self.repos)
        self.navigator = BrowseNavigator(self.repos)
        self.session = UserSession(self.repos, notify)

    @classmethod
    def open(cls, store: BaseStore, notify: Notifier = log_notifier) -> "Catalog":
        """Restore and seed the store, then build the context over it."""
        database.prepare_store(store)
        return cls(store, notify)

    def reset(self) -> None:
        self.navigator.reset()
        self.session.logout()

    def _fail(self, error) -> Outcome:
        self.notify(error.message, "error")
        return Outcome.failure(error)

    # ---------------------------
    # Upload
    # ---------------------------

    def validate_upload(self, fields: Dict[str, Any], file_name: str, content_type: str, size: int) -> Optional[ValidationError]:
        for key, message in REQUIRED_UPLOAD_FIELDS:
            if not str(fields.get(key) or "").strip():
                return ValidationError(message)
        if fields["type"] not in RESOURCE_TYPES:
            return ValidationError("Please select a resource type")
        if not file_name or size <= 0:
            return ValidationError("Please select a file to upload")
        if content_type not in ALLOWED_FILE_TYPES:
            return ValidationError("Invalid file type. Please upload PDF, DOC, DOCX, JPG, or PNG files.")
        if size > MAX_FILE_SIZE:
            return ValidationError("File size too large. Maximum size is 10MB.")
        return None

    def upload(self, fields: Dict[str, Any], file_name: str, content_type: str, data: bytes) -> Outcome:
        auth = self.session.require_user()
        if not auth:
            return auth
        user = auth.value

        error = self.validate_upload(fields, file_name, content_type, len(data or b""))
        if error is not None:
            logger.warning(f"Upload rejected for user {user.id}: {error.message}")
            return self._fail(error)

        try:
            draft = ResourceDraft(
                title=str(fields["title"]).strip(),
                description=str(fields.get("description") or "").strip(),
                type=fields["type"],
                department_id=fields["department_id"],
                course_id=fields["course_id"],
                lecturer_id=fields["lecturer_id"],
                year=str(fields["year"]),
                file_name=file_name,
                file_size=len(data),
                file_type=content_type,
                file_data=encode_data_url(content_type, data),
                uploaded_by=user.id,
            )
        except PydanticValidationError as e:
            return self._fail(ValidationError(f"Invalid resource details: {e.error_count()} error(s)"))

        resource = self.repos.resources.add(draft)
        if resource is None:
            return self._fail(StorageCapacityError("Upload failed. Storage is full."))

        logger.info(f"User {user.id} uploaded resource {resource.id} ({resource.file_size} bytes)")
        self.notify("Resource uploaded successfully!", "success")
        return Outcome.success(resource, "Resource uploaded successfully!")

    async def upload_async(self, fields: Dict[str, Any], file_name: str, content_type: str,
                           read: Callable[[], Awaitable[bytes]]) -> Outcome:
        """Upload whose bytes come from an awaitable source (e.g. a request body)."""
        auth = self.session.require_user()
        if not auth:
            return auth
        data = await read()
        return self.upload(fields, file_name, content_type, data)

    # ---------------------------
    # Download / delete / details
    # ---------------------------

    def download(self, resource_id: str) -> Outcome:
        resource = self.repos.resources.find_by_id(resource_id)
        if resource is None:
            return self._fail(NotFoundError("Resource not found"))
        try:
            mime, payload = decode_data_url(resource.file_data)
        except ValueError as e:
            logger.error(f"Resource {resource_id} has an unreadable payload: {e}")
            return self._fail(ValidationError("Download failed. Please try again."))

        if not self.repos.resources.increment_downloads(resource_id):
            return self._fail(StorageCapacityError("Download failed. Storage error."))
        resource = resource.model_copy(update={"downloads": resource.downloads + 1})
        self.notify("Download started", "success")
        return Outcome.success({"resource": resource, "content_type": mime, "data": payload})

    def delete(self, resource_id: str) -> Outcome:
        auth = self.session.require_user()
        if not auth:
            return auth
        user = auth.value

        resource = self.repos.resources.find_by_id(resource_id)
        if resource is None:
            return self._fail(NotFoundError("Resource not found"))
        if resource.uploaded_by != user.id:
            logger.warning(f"User {user.id} tried to delete resource {resource_id} owned by {resource.uploaded_by}")
            return self._fail(ValidationError("You can only delete your own resources"))
        if not self.repos.resources.remove(resource_id):
            return self._fail(StorageCapacityError("Failed to delete resource"))

        logger.info(f"User {user.id} deleted resource {resource_id}")
        self.notify("Resource deleted successfully", "success")
        return Outcome.success(resource, "Resource deleted successfully")

    def describe(self, resource_id: str) -> Outcome:
        resource = self.repos.resources.find_by_id(resource_id)
        if resource is None:
            return self._fail(NotFoundError("Resource not found"))

        department = self.repos.departments.find_by_id(resource.department_id)
        course = self.repos.courses.find_by_id(resource.course_id)
        lecturer = self.repos.lecturers.find_by_id(resource.lecturer_id)
        uploader = self.repos.users.find_by_id(resource.uploaded_by)
        current = self.session.current_user()

        return Outcome.success({
            "resource": resource,
            "department": department.name if department else UNKNOWN,
            "course_code": course.code if course else UNKNOWN,
            "course_name": course.name if course else UNKNOWN,
            "lecturer": lecturer_label(lecturer) if lecturer else UNKNOWN,
            "uploader": uploader.name if uploader else "Unknown User",
            "file_size_label": format_file_size(resource.file_size),
            "can_delete": current is not None and current.id == resource.uploaded_by,
        })

    # ---------------------------
    # Dashboard
    # ---------------------------

    def stats(self) -> Dict[str, int]:
        snapshot = self.store.snapshot()
        current = self.session.current_user()
        counted = {k: snapshot[k] for k in (database.USERS, database.RESOURCES, database.DEPARTMENTS)}
        return {
            "total_users": len(counted[database.USERS]),
            "total_resources": len(counted[database.RESOURCES]),
            "total_departments": len(counted[database.DEPARTMENTS]),
            "my_uploads": len(self.repos.resources.by_user(current.id)) if current else 0,
            "storage_used": len(json.dumps(counted).encode("utf-8")),
        }


