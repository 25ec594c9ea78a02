"""
grading_service.py — Grade registration, summaries, roster grids and report cards.

Every operation runs within a single request: it validates its input, reads
what it needs from the store (independent reads concurrently) and hands the
documents to the pure calculators in aggregation.py / stats.py and the
report builder.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Tuple

from core.aggregation import aggregate_periods
from core.errors import InactiveError, NotFoundError, PreconditionFailedError, DuplicateError, ValidationError
from core.grading_policy import GradingPolicy
from core.report_builder import generate_transcript_pdf, transcript_filename
from core.scores import (
    compute_total,
    recompute_total,
    validate_components,
    validate_cycle,
    validate_edit,
    validate_period,
)
from core.stats import (
    compute_accumulation,
    compute_overall_accumulated,
    compute_period_statistics,
    compute_roster_grid,
    compute_student_summary,
)
from core.store import GradingStore, serialize, to_object_id

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 200


def _course_descriptor(course: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if course is None:
        return None
    return {
        "id": str(course["_id"]),
        "stage": course.get("stage"),
        "grade": course.get("grade"),
        "section": course.get("section"),
        "shift": course.get("shift"),
    }


def _student_descriptor(user: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    return {
        "id": str(user["_id"]),
        "name": user.get("name", ""),
        "surname": user.get("surname", ""),
        "code": user.get("code"),
    }


class GradingService:
    def __init__(self, store: GradingStore, policy: GradingPolicy, school_name: str = "MI CASITA"):
        self.store = store
        self.policy = policy
        self.school_name = school_name

    # ── Writes ──────────────────────────────────────────────────────

    async def register_grade(
        self,
        student: Any,
        subject: Any,
        course: Any,
        period: Any,
        cycle: Any,
        classwork: Any,
        exam: Any,
        recorded_by: Any,
        remarks: Optional[str] = None,
    ) -> Dict[str, Any]:
        student_id = to_object_id(student, "student")
        subject_id = to_object_id(subject, "subject")
        course_id = to_object_id(course, "course")
        recorder_id = to_object_id(recorded_by, "recorded_by")
        period = validate_period(period, self.policy)
        cycle = validate_cycle(cycle)
        classwork, exam = validate_components(classwork, exam)

        subject_doc, course_doc = await asyncio.gather(
            self.store.find_subject(subject_id),
            self.store.find_course(course_id),
        )
        if subject_doc is None:
            raise NotFoundError("Subject not found")
        if course_doc is None:
            raise NotFoundError("Course not found")
        if subject_doc.get("course") != course_id:
            logger.warning("Grade rejected: subject %s does not belong to course %s", subject_id, course_id)
            raise ValidationError("The subject does not belong to this course")

        enrollment =await self.store.find_active_enrollment(student_id, cycle, course=course_id)
        if enrollment is None:
            logger.warning("Grade rejected: student %s not enrolled in course %s for %s",
                           student_id, course_id, cycle)
            raise PreconditionFailedError(
                "The student is not enrolled in this course for this school cycle "
                "(or the enrollment is inactive)"
            )

        if await self.store.find_active_grade(student_id, subject_id, period, cycle):
            logger.info("Duplicate grade for student %s subject %s period %s cycle %s",
                        student_id, subject_id, period, cycle)
            raise DuplicateError(f"A grade is already registered for period {period}")

        doc = await self.store.insert_grade({
            "student": student_id,
            "subject": subject_id,
            "course": course_id,
            "period": period,
            "cycle": cycle,
            "classwork": classwork,
            "exam": exam,
            "total": compute_total(classwork, exam),
            "remarks": remarks or "",
            "recorded_by": recorder_id,
        })
        logger.info("Registered grade %s (total %s)", doc["_id"], doc["total"])
        return serialize(doc)

    async def edit_grade(
        self,
        grade_id: Any,
        classwork: Any = None,
        exam: Any = None,
        remarks: Optional[str] = None,
    ) -> Dict[str, Any]:
        oid = to_object_id(grade_id, "id")
        changes = validate_edit(classwork=classwork, exam=exam, remarks=remarks)

        existing = await self.store.find_grade(oid)
        if existing is None:
            raise NotFoundError("Grade not found")
        if not existing.get("active", False):
            raise InactiveError("A deleted grade cannot be edited")

        fields: Dict[str, Any] = {}
        if changes["classwork"] is not None or changes["exam"] is not None:
            fields.update(recompute_total(existing, classwork=changes["classwork"], exam=changes["exam"]))
        if changes["remarks"] is not None:
            fields["remarks"] = changes["remarks"]
        if not fields:
            return serialize(existing)

        # Deactivated between the read and the write
        updated = await self.store.update_grade(oid, fields, active_only=True)
        if updated is None:
            raise InactiveError("A deleted grade cannot be edited")
        logger.info("Updated grade %s (total %s)", oid, updated.get("total"))
        return serialize(updated)

    async def deactivate_grade(self, grade_id: Any) -> Dict[str, Any]:
        oid = to_object_id(grade_id, "id")
        updated = await self.store.update_grade(oid, {"active": False})
        if updated is None:
            raise NotFoundError("Grade not found")
        logger.info("Deactivated grade %s", oid)
        return serialize(updated)

    # ── Reads ───────────────────────────────────────────────────────

    async def get_grade(self, grade_id: Any) -> Dict[str, Any]:
        doc = await self.store.find_grade(to_object_id(grade_id, "id"))
        if doc is None:
            raise NotFoundError("Grade not found")
        return serialize(doc)

    async def list_grades(
        self,
        cycle: Any = None,
        period: Any = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Dict[str, Any]:
        cycle = validate_cycle(cycle) if cycle is not None else None
        period = validate_period(period, self.policy) if period is not None else None
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        if offset < 0:
            raise ValidationError("offset must not be negative")

        total, docs = await asyncio.gather(
            self.store.count_grades(cycle, period),
            self.store.page_grades(cycle, period, limit=limit, offset=offset),
        )
        return {"total": total, "grades": [serialize(d) for d in docs]}

    async def _load_report_card(self, student: Any, cycle: Any):
        """Enrollment, course, subject rows and identity for one student/cycle."""
        student_id = to_object_id(student, "student")
        cycle = validate_cycle(cycle)

        enrollment = await self.store.find_active_enrollment(student_id, cycle)
        if enrollment is None:
            raise NotFoundError("The student has no enrollment for this school cycle")

        course, subjects, records, user = await asyncio.gather(
            self.store.find_course(enrollment["course"]),
            self.store.list_subjects(enrollment["course"]),
            self.store.list_student_grades(student_id, cycle),
            self.store.find_user(student_id),
        )
        if course is None:
            raise NotFoundError("The enrolled course no longer exists")

        passing_score = self.policy.passing_score_for(course.get("stage"))
        rows = aggregate_periods(subjects, records, self.policy)
        return cycle, course, user, rows, passing_score

    async def get_student_summary(self, student: Any, cycle: Any) -> Dict[str, Any]:
        cycle, course, user, rows, passing_score = await self._load_report_card(student, cycle)
        summary = compute_student_summary(rows, passing_score, self.policy)
        return {
            "student": _student_descriptor(user),
            "course": _course_descriptor(course),
            "cycle": cycle,
            **summary,
        }

    async def get_roster_grid(self, course: Any, subject: Any, period: Any, cycle: Any) -> Dict[str, Any]:
        course_id = to_object_id(course, "course")
        subject_id = to_object_id(subject, "subject")
        period = validate_period(period, self.policy)
        cycle = validate_cycle(cycle)

        enrollments, records = await asyncio.gather(
            self.store.list_roster(course_id, cycle),
            self.store.list_period_grades(course_id, subject_id, period, cycle),
        )
        student_ids = list({e["student"] for e in enrollments})
        users = {u["_id"]: u for u in await self.store.find_users(student_ids)}
        students = [users.get(sid, {"_id": sid}) for sid in student_ids]

        grid = compute_roster_grid(students, records, self.policy)
        return {"period": period, "cycle": cycle, **grid}

    async def render_transcript(self, student: Any, cycle: Any) -> Tuple[str, bytes]:
        cycle, course, user, rows, passing_score = await self._load_report_card(student, cycle)
        if user is None:
            raise NotFoundError("Student not found")

        accumulated = compute_accumulation(rows, passing_score, self.policy)
        period_stats = compute_period_statistics(accumulated, passing_score, self.policy)
        overall = compute_overall_accumulated(accumulated, self.policy)

        pdf = generate_transcript_pdf(
            school_name=self.school_name,
            student=user,
            course=course,
            cycle=cycle,
            rows=accumulated,
            period_stats=period_stats,
            overall_accumulated=overall,
            passing_score=passing_score,
            policy=self.policy,
        )
        logger.info("Rendered transcript for student %s cycle %s (%d bytes)", user["_id"], cycle, len(pdf))
        return transcript_filename(user, cycle), pdf
