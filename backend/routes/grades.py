"""
Grade routes — registration, edits, summaries, roster grids and report cards.
"""

import io
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from core.grading_service import GradingService

router = APIRouter()


class GradeCreate(BaseModel):
    student: str
    subject: str
    course: str
    period: Any
    cycle: Any
    classwork: Any
    exam: Any
    recorded_by: str
    remarks: Optional[str] = None


class GradeUpdate(BaseModel):
    classwork: Optional[Any] = None
    exam: Optional[Any] = None
    remarks: Optional[str] = None


def get_service(request: Request) -> GradingService:
    """Service built at startup (see main.lifespan)."""
    return request.app.state.grading_service


@router.post("/", status_code=201)
async def register_grade(payload: GradeCreate, service: GradingService = Depends(get_service)):
    """Register one bimester grade; the total is computed from classwork + exam."""
    grade = await service.register_grade(**payload.model_dump())
    return {"success": True, "message": "Grade registered", "grade": grade}


@router.get("/")
async def list_grades(
    cycle: Optional[int] = None,
    period: Optional[int] = None,
    limit: int = Query(50),
    offset: int = Query(0),
    service: GradingService = Depends(get_service),
):
    result = await service.list_grades(cycle=cycle, period=period, limit=limit, offset=offset)
    return {"success": True, **result}


@router.get("/student/{student_id}/{cycle}")
async def student_summary(student_id: str, cycle: str, service: GradingService = Depends(get_service)):
    """Subject averages (summary view) for one student and school cycle."""
    result = await service.get_student_summary(student_id, cycle)
    return {"success": True, **result}


@router.get("/transcript/{student_id}/{cycle}")
async def transcript_pdf(student_id: str, cycle: str, service: GradingService = Depends(get_service)):
    """Official report card PDF."""
    filename, pdf = await service.render_transcript(student_id, cycle)
    return StreamingResponse(
        io.BytesIO(pdf),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/roster/{course_id}/{subject_id}/{period}")
async def roster_grid(
    course_id: str,
    subject_id: str,
    period: str,
    cycle: str = Query(...),
    service: GradingService = Depends(get_service),
):
    """Every enrolled student against one subject and bimester."""
    result = await service.get_roster_grid(course_id, subject_id, period, cycle)
    return {"success": True, **result}


@router.get("/{grade_id}")
async def read_grade(grade_id: str, service: GradingService = Depends(get_service)):
    return {"success": True, "grade": await service.get_grade(grade_id)}


@router.put("/{grade_id}")
async def edit_grade(grade_id: str, payload: GradeUpdate, service: GradingService = Depends(get_service)):
    grade = await service.edit_grade(grade_id, **payload.model_dump())
    return {"success": True, "message": "Grade updated", "grade": grade}


@router.delete("/{grade_id}")
async def delete_grade(grade_id: str, service: GradingService = Depends(get_service)):
    """Soft delete: the record stays with active=false."""
    grade = await service.deactivate_grade(grade_id)
    return {"success": True, "message": "Grade deleted", "grade": grade}
