"""
store.py — MongoDB access for grades and the records they depend on.

Grades are read and written here; enrollments, courses, subjects and users
belong to other parts of the school system and are only read.

Cycles are stored and queried as integers. Callers validate them with
core.scores.validate_cycle before they reach this module.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from core.errors import DuplicateError, ValidationError

logger = logging.getLogger(__name__)

MAX_ROSTER = 5000
MAX_SUBJECTS = 500
MAX_RECORDS = 5000

GRADE_UNIQUE_INDEX = "uniq_active_grade_per_period"


def _now():
    return datetime.now(timezone.utc)


def to_object_id(value: Any, field: str = "id") -> ObjectId:
    """Parse a 24-hex id; malformed ids are a caller error."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise ValidationError(f"{field} is not a valid id")


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Mongo document -> JSON-safe dict with 'id' instead of '_id'."""
    if doc is None:
        return None
    out = {}
    for key, value in doc.items():
        if key == "_id":
            out["id"] = str(value)
        elif isinstance(value, ObjectId):
            out[key] = str(value)
        elif isinstance(value, datetime):
            out[key] = value.isoformat()
        else:
            out[key] = value
    return out


def create_client(mongo_url: str) -> AsyncIOMotorClient:
    return AsyncIOMotorClient(mongo_url, serverSelectionTimeoutMS=5000)


class GradingStore:
    """Collections used by the grading engine."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.grades = db["grades"]
        self.enrollments = db["enrollments"]
        self.courses = db["courses"]
        self.subjects = db["subjects"]
        self.users = db["users"]

    async def ensure_indexes(self):
        """At most one active grade per (student, subject, period, cycle)."""
        await self.grades.create_index(
            [("student", ASCENDING), ("subject", ASCENDING), ("period", ASCENDING), ("cycle", ASCENDING)],
            name=GRADE_UNIQUE_INDEX,
            unique=True,
            partialFilterExpression={"active": True},
        )
        await self.grades.create_index([("student", ASCENDING), ("cycle", ASCENDING)])
        await self.enrollments.create_index([("course", ASCENDING), ("cycle", ASCENDING)])

    # ── Grades ──────────────────────────────────────────────────────

    async def insert_grade(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        now = _now()
        doc = {**doc, "active": True, "created_at": now, "updated_at": now}
        try:
            result = await self.grades.insert_one(doc)
        except DuplicateKeyError:
            raise DuplicateError(
                f"A grade is already registered for period {doc.get('period')}"
            )
        doc["_id"] = result.inserted_id
        return doc

    async def find_grade(self, grade_id: ObjectId) -> Optional[Dict[str, Any]]:
        return await self.grades.find_one({"_id": grade_id})

    async def find_active_grade(
        self, student: ObjectId, subject: ObjectId, period: int, cycle: int
    ) -> Optional[Dict[str, Any]]:
        return await self.grades.find_one({
            "student": student,
            "subject": subject,
            "period": period,
            "cycle": cycle,
            "active": True,
        })

    async def update_grade(
        self, grade_id: ObjectId, fields: Dict[str, Any], active_only: bool = False
    ) -> Optional[Dict[str, Any]]:
        """Apply fields and return the new document; None when nothing matched."""
        query: Dict[str, Any] = {"_id": grade_id}
        if active_only:
            query["active"] = True
        return await self.grades.find_one_and_update(
            query,
            {"$set": {**fields, "updated_at": _now()}},
            return_document=ReturnDocument.AFTER,
        )

    async def list_student_grades(self, student: ObjectId, cycle: int) -> List[Dict[str, Any]]:
        cursor = self.grades.find({"student": student, "cycle": cycle, "active": True})
        return await cursor.to_list(MAX_RECORDS)

    async def list_period_grades(
        self, course: ObjectId, subject: ObjectId, period: int, cycle: int
    ) -> List[Dict[str, Any]]:
        cursor = self.grades.find({
            "course": course,
            "subject": subject,
            "period": period,
            "cycle": cycle,
            "active": True,
        })
        return await cursor.to_list(MAX_ROSTER)

    @staticmethod
    def _grade_query(cycle: Optional[int] = None, period: Optional[int] = None) -> Dict[str, Any]:
        query: Dict[str, Any] = {"active": True}
        if cycle is not None:
            query["cycle"] = cycle
        if period is not None:
            query["period"] = period
        return query

    async def count_grades(self, cycle: Optional[int] = None, period: Optional[int] = None) -> int:
        return await self.grades.count_documents(self._grade_query(cycle, period))

    async def page_grades(
        self,
        cycle: Optional[int] = None,
        period: Optional[int] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        cursor = (
            self.grades.find(self._grade_query(cycle, period))
            .sort("created_at", DESCENDING)
            .skip(offset)
            .limit(limit)
        )
        return await cursor.to_list(limit)

    # ── Collaborators (read-only) ───────────────────────────────────

    async def find_active_enrollment(
        self, student: ObjectId, cycle: int, course: Optional[ObjectId] = None
    ) -> Optional[Dict[str, Any]]:
        query: Dict[str, Any] = {"student": student, "cycle": cycle, "active": True}
        if course is not None:
            query["course"] = course
        return await self.enrollments.find_one(query)

    async def find_course(self, course: ObjectId) -> Optional[Dict[str, Any]]:
        return await self.courses.find_one({"_id": course})

    async def find_subject(self, subject: ObjectId) -> Optional[Dict[str, Any]]:
        return await self.subjects.find_one({"_id": subject})

    async def list_subjects(self, course: ObjectId) -> List[Dict[str, Any]]:
        cursor = self.subjects.find({"course": course, "active": True}).sort("name", ASCENDING)
        return await cursor.to_list(MAX_SUBJECTS)

    async def list_roster(self, course: ObjectId, cycle: int) -> List[Dict[str, Any]]:
        cursor = self.enrollments.find({"course": course, "cycle": cycle, "active": True})
        return await cursor.to_list(MAX_ROSTER)

    async def find_user(self, user: ObjectId) -> Optional[Dict[str, Any]]:
        return await self.users.find_one({"_id": user}, {"name": 1, "surname": 1, "code": 1})

    async def find_users(self, users: List[ObjectId]) -> List[Dict[str, Any]]:
        if not users:
            return []
        cursor = self.users.find({"_id": {"$in": users}}, {"name": 1, "surname": 1, "code": 1})
        return await cursor.to_list(len(users))
