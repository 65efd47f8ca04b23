"""
Key-value persistence for the resource catalog.

Every logical collection is stored as one whole snapshot under a fixed key.
Writes replace the snapshot; after each collection write a consolidated
backup of all five collections is written under the "backup" key.

Two backends share the same contract:
- MemoryStore: in-process, JSON-encoded, with an optional byte quota
- MongoStore: one document per key in a MongoDB collection
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from errors import StorageCapacityError
from utils import now_utc

logger = logging.getLogger(__name__)

USERS = "users"
RESOURCES = "resources"
DEPARTMENTS = "departments"
COURSES = "courses"
LECTURERS = "lecturers"
CURRENT_USER = "currentUser"
BACKUP = "backup"
SEARCH_HISTORY = "searchHistory"

COLLECTION_KEYS = (USERS, RESOURCES, DEPARTMENTS, COURSES, LECTURERS)
DEFAULT_NAMESPACE = "academicHub"
EXPORT_VERSION = "1.0"


# ---------------------------
# Store backends
# ---------------------------

class BaseStore:
    """Whole-snapshot key-value store.

    Subclasses implement _read/_write/_delete/_keys on namespaced keys.
    _write raises StorageCapacityError when the value cannot be persisted.
    """

    name = "base"

    def __init__(self, namespace: str = DEFAULT_NAMESPACE):
        self.namespace = namespace

    def _k(self, key: str) -> str:
        return f"{self.namespace}_{key}" if self.namespace else key

    def get(self, key: str) -> Optional[Any]:
        return self._read(self._k(key))

    def contains(self, key: str) -> bool:
        return self._read(self._k(key)) is not None

    def set(self, key: str, value: Any) -> bool:
        try:
            self._write(self._k(key), value)
        except StorageCapacityError as e:
            logger.error(f"Write to '{key}' failed: {e.message}")
            return False
        if key in COLLECTION_KEYS:
            self._backup()
        return True

    def remove(self, key: str) -> None:
        self._delete(self._k(key))

    def keys(self) -> List[str]:
        prefix = self._k("")
        return [k[len(prefix):] for k in self._keys() if k.startswith(prefix)]

    def snapshot(self) -> Dict[str, list]:
        return {key: self.get(key) or [] for key in COLLECTION_KEYS}

    def _backup(self) -> None:
        try:
            self._write(self._k(BACKUP), self.snapshot())
        except StorageCapacityError as e:
            logger.warning(f"Backup snapshot not written: {e.message}")

    def _read(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def _write(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def _delete(self, key: str) -> None:
        raise NotImplementedError

    def _keys(self) -> List[str]:
        raise NotImplementedError


class MemoryStore(BaseStore):
    """In-process store holding JSON text, like browser local storage."""

    name = "memory"

    def __init__(self, namespace: str = DEFAULT_NAMESPACE, quota_bytes: Optional[int] = None):
        super().__init__(namespace)
        self.quota_bytes = quota_bytes
        self._data: Dict[str, str] = {}

    def _read(self, key):
        raw = self._data.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.error(f"Unreadable value under '{key}'")
            return None

    def _write(self, key, value):
        try:
            raw = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageCapacityError(f"Value is not serializable: {e}") from e
        if self.quota_bytes is not None:
            used = self.size_bytes() - len(self._data.get(key, "")) + len(raw)
            if used > self.quota_bytes:
                raise StorageCapacityError(f"Quota of {self.quota_bytes} bytes exceeded")
        self._data[key] = raw

    def _delete(self, key):
        self._data.pop(key, None)

    def _keys(self):
        return list(self._data)

    def size_bytes(self) -> int:
        return sum(len(v) for v in self._data.values())


class MongoStore(BaseStore):
    """One document per key: {"_id": key, "value": ...}."""

    name = "mongodb"

    def __init__(self, db: Database, collection: str = "kv", namespace: str = DEFAULT_NAMESPACE):
        super().__init__(namespace)
        self.db = db
        self.collection = db[collection]

    def _read(self, key):
        try:
            doc = self.collection.find_one({"_id": key})
        except PyMongoError as e:
            logger.error(f"Read of '{key}' failed: {e}")
            return None
        return doc.get("value") if doc else None

    def _write(self, key, value):
        try:
            self.collection.replace_one({"_id": key}, {"_id": key, "value": value}, upsert=True)
        except PyMongoError as e:
            raise StorageCapacityError(str(e)) from e

    def _delete(self, key):
        try:
            self.collection.delete_one({"_id": key})
        except PyMongoError as e:
            logger.error(f"Delete of '{key}' failed: {e}")

    def _keys(self):
        try:
            return [doc["_id"] for doc in self.collection.find({}, {"_id": 1})]
        except PyMongoError as e:
            logger.error(f"Listing keys failed: {e}")
            return []


def get_store() -> BaseStore:
    """Build the store from the environment.

    DATABASE_URL selects MongoDB; otherwise an in-process MemoryStore is used.
    """
    namespace = os.getenv("STORE_NAMESPACE", DEFAULT_NAMESPACE)
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        client = MongoClient(database_url)
        db = client[os.getenv("DATABASE_NAME", "academic_hub")]
        logger.info(f"Using MongoDB store '{db.name}'")
        return MongoStore(db, namespace=namespace)
    quota = os.getenv("STORE_QUOTA_BYTES")
    return MemoryStore(namespace=namespace, quota_bytes=int(quota) if quota else None)


# ---------------------------
# Default reference data
# ---------------------------

DEFAULT_DEPARTMENTS = [
    {"id": "comp-sci", "name": "Computer Science", "icon": "fas fa-laptop-code"},
    {"id": "engineering", "name": "Engineering", "icon": "fas fa-cogs"},
    {"id": "mathematics", "name": "Mathematics", "icon": "fas fa-calculator"},
    {"id": "physics", "name": "Physics", "icon": "fas fa-atom"},
    {"id": "chemistry", "name": "Chemistry", "icon": "fas fa-flask"},
    {"id": "biology", "name": "Biology", "icon": "fas fa-dna"},
    {"id": "economics", "name": "Economics", "icon": "fas fa-chart-line"},
    {"id": "business", "name": "Business Administration", "icon": "fas fa-briefcase"},
    {"id": "psychology", "name": "Psychology", "icon": "fas fa-brain"},
    {"id": "literature", "name": "Literature", "icon": "fas fa-book-open"},
]

DEFAULT_COURSES = [
    {"id": "cs101", "department_id": "comp-sci", "code": "CS101", "name": "Introduction to Programming", "level": 100},
    {"id": "cs201", "department_id": "comp-sci", "code": "CS201", "name": "Data Structures", "level": 200},
    {"id": "cs301", "department_id": "comp-sci", "code": "CS301", "name": "Algorithms", "level": 300},
    {"id": "cs401", "department_id": "comp-sci", "code": "CS401", "name": "Software Engineering", "level": 400},
    {"id": "eng101", "department_id": "engineering", "code": "ENG101", "name": "Engineering Mathematics I", "level": 100},
    {"id": "eng201", "department_id": "engineering", "code": "ENG201", "name": "Thermodynamics", "level": 200},
    {"id": "eng301", "department_id": "engineering", "code": "ENG301", "name": "Control Systems", "level": 300},
    {"id": "math101", "department_id": "mathematics", "code": "MATH101", "name": "Calculus I", "level": 100},
    {"id": "math201", "department_id": "mathematics", "code": "MATH201", "name": "Linear Algebra", "level": 200},
    {"id": "math301", "department_id": "mathematics", "code": "MATH301", "name": "Abstract Algebra", "level": 300},
    {"id": "phys101", "department_id": "physics", "code": "PHYS101", "name": "General Physics I", "level": 100},
    {"id": "phys201", "department_id": "physics", "code": "PHYS201", "name": "Quantum Mechanics", "level": 200},
    {"id": "chem101", "department_id": "chemistry", "code": "CHEM101", "name": "General Chemistry", "level": 100},
    {"id": "chem201", "department_id": "chemistry", "code": "CHEM201", "name": "Organic Chemistry", "level": 200},
]

DEFAULT_LECTURERS = [
    {"id": "lec001", "department_id": "comp-sci", "name": "Dr. Sarah Johnson", "title": "Professor"},
    {"id": "lec002", "department_id": "comp-sci", "name": "Prof. Michael Chen", "title": "Associate Professor"},
    {"id": "lec003", "department_id": "comp-sci", "name": "Dr. Emily Rodriguez", "title": "Assistant Professor"},
    {"id": "lec004", "department_id": "engineering", "name": "Prof. David Williams", "title": "Professor"},
    {"id": "lec005", "department_id": "engineering", "name": "Dr. Jennifer Lee", "title": "Associate Professor"},
    {"id": "lec006", "department_id": "mathematics", "name": "Prof. Robert Taylor", "title": "Professor"},
    {"id": "lec007", "department_id": "mathematics", "name": "Dr. Lisa Anderson", "title": "Assistant Professor"},
    {"id": "lec008", "department_id": "physics", "name": "Prof. James Wilson", "title": "Professor"},
    {"id": "lec009", "department_id": "physics", "name": "Dr. Maria Garcia", "title": "Associate Professor"},
    {"id": "lec010", "department_id": "chemistry", "name": "Prof. Thomas Brown", "title": "Professor"},
    {"id": "lec011", "department_id": "chemistry", "name": "Dr. Amanda Davis", "title": "Assistant Professor"},
]


# ---------------------------
# Lifecycle helpers
# ---------------------------

def restore_from_backup(store: BaseStore) -> List[str]:
    """Restore every collection whose key is missing but present in the backup."""
    backup = store.get(BACKUP)
    if not isinstance(backup, dict):
        return []
    restored = []
    for key in COLLECTION_KEYS:
        if store.contains(key) or key not in backup:
            continue
        if store.set(key, backup.get(key) or []):
            restored.append(key)
    if restored:
        logger.warning(f"Restored collections from backup: {', '.join(restored)}")
    return restored


def initialize_default_data(store: BaseStore) -> None:
    defaults = {
        DEPARTMENTS: DEFAULT_DEPARTMENTS,
        COURSES: DEFAULT_COURSES,
        LECTURERS: DEFAULT_LECTURERS,
        USERS: [],
        RESOURCES: [],
    }
    for key, records in defaults.items():
        if not store.contains(key):
            store.set(key, [dict(r) for r in records])


def prepare_store(store: BaseStore) -> BaseStore:
    """Startup sequence: restore missing collections, then seed defaults."""
    restore_from_backup(store)
    initialize_default_data(store)
    return store


def export_snapshot(store: BaseStore) -> Dict[str, Any]:
    data: Dict[str, Any] = store.snapshot()
    data["export_date"] = now_utc().isoformat()
    data["version"] = EXPORT_VERSION
    return data


def clear_all_data(store: BaseStore) -> None:
    for key in store.keys():
        store.remove(key)
    initialize_default_data(store)
