"""
Pytest configuration and fixtures.

Provides:
- an in-process Motor-compatible database (mongomock-motor)
- a seeded school: two courses, subjects, students and enrollments
- a GradingService wired to that store
"""

import os
import sys

import pytest
from bson import ObjectId
from mongomock_motor import AsyncMongoMockClient

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.grading_policy import GradingPolicy
from core.grading_service import GradingService
from core.store import GradingStore

CYCLE = 2025


class School:
    """Ids of the seeded documents."""

    def __init__(self):
        self.basico = ObjectId()
        self.diversificado = ObjectId()
        self.teacher = ObjectId()

        self.math = ObjectId()
        self.science = ObjectId()
        self.language = ObjectId()
        self.music = ObjectId()
        self.physics = ObjectId()

        self.zeta = ObjectId()
        self.alvarez = ObjectId()
        self.martinez = ObjectId()
        self.unenrolled = ObjectId()
        self.senior = ObjectId()


@pytest.fixture
def policy():
    return GradingPolicy()


@pytest.fixture
async def store():
    client = AsyncMongoMockClient()
    grading_store = GradingStore(client["school_grades_test"])
    await grading_store.ensure_indexes()
    return grading_store


@pytest.fixture
async def school(store):
    ids = School()

    await store.courses.insert_many([
        {"_id": ids.basico, "stage": "BASICO", "grade": "PRIMERO_BASICO",
         "section": "A", "shift": "MATUTINA", "cycle": CYCLE},
        {"_id": ids.diversificado, "stage": "DIVERSIFICADO", "grade": "CUARTO_DIVERSIFICADO",
         "section": "B", "shift": "VESPERTINA", "cycle": CYCLE},
    ])
    await store.subjects.insert_many([
        {"_id": ids.math, "name": "Matemática", "course": ids.basico, "active": True},
        {"_id": ids.science, "name": "Ciencias Naturales", "course": ids.basico, "active": True},
        {"_id": ids.language, "name": "Lenguaje", "course": ids.basico, "active": True},
        {"_id": ids.music, "name": "Música", "course": ids.basico, "active": False},
        {"_id": ids.physics, "name": "Física", "course": ids.diversificado, "active": True},
    ])
    await store.users.insert_many([
        {"_id": ids.zeta, "name": "Ana", "surname": "Zeta", "code": "E-001"},
        {"_id": ids.alvarez, "name": "Bruno", "surname": "Álvarez", "code": "E-002"},
        {"_id": ids.martinez, "name": "Carla", "surname": "Martínez", "code": "E-003"},
        {"_id": ids.unenrolled, "name": "Diego", "surname": "Ortiz", "code": "E-004"},
        {"_id": ids.senior, "name": "Elena", "surname": "Paz", "code": "E-005"},
        {"_id": ids.teacher, "name": "Profe", "surname": "López", "code": "P-001"},
    ])
    await store.enrollments.insert_many([
        {"student": ids.zeta, "course": ids.basico, "cycle": CYCLE, "active": True},
        {"student": ids.alvarez, "course": ids.basico, "cycle": CYCLE, "active": True},
        {"student": ids.martinez, "course": ids.basico, "cycle": CYCLE, "active": True},
        {"student": ids.unenrolled, "course": ids.basico, "cycle": CYCLE, "active": False},
        {"student": ids.senior, "course": ids.diversificado, "cycle": CYCLE, "active": True},
    ])
    return ids


@pytest.fixture
def service(store, policy):
    return GradingService(store, policy, school_name="MI CASITA")


@pytest.fixture
def register(service, school):
    """Register a grade for a basico student with sensible defaults."""

    async def _register(student, subject, period, classwork, exam, course=None, cycle=CYCLE, remarks=None):
        return await service.register_grade(
            student=str(student),
            subject=str(subject),
            course=str(course or school.basico),
            period=period,
            cycle=cycle,
            classwork=classwork,
            exam=exam,
            recorded_by=str(school.teacher),
            remarks=remarks,
        )

    return _register
