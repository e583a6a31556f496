from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from .. import schemas
from ..services import roster
from .deps import require_admin

router = APIRouter(prefix="", tags=["roster"])


@router.get("/roster-patterns", response_model=list[schemas.RosterPatternOut])
def list_patterns(
    doctor_id: Optional[int] = Query(None, alias="doctorId"),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    db: Session = Depends(get_db),
):
    return [schemas.RosterPatternOut.model_validate(p) for p in roster.list_patterns(db, doctor_id, is_active)]


@router.post("/roster-patterns", response_model=schemas.RosterPatternOut, status_code=status.HTTP_201_CREATED)
def create_pattern(req: schemas.RosterPatternCreate, _: bool = Depends(require_admin), db: Session = Depends(get_db)):
    p = roster.create_pattern(db, req.doctor_id, req.shift_id, req.day_of_week, req.notes)
    return schemas.RosterPatternOut.model_validate(p)


@router.put("/roster-patterns/{pattern_id}/active", response_model=schemas.RosterPatternOut)
def toggle_pattern(
    pattern_id: int,
    is_active: bool = Query(..., alias="isActive"),
    _: bool = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return schemas.RosterPatternOut.model_validate(roster.set_pattern_active(db, pattern_id, is_active))


@router.get("/schedule-generation/preview", response_model=schemas.GenerationPreview)
def preview(
    year: Optional[int] = Query(None),
    month: Optional[int] = Query(None, ge=1, le=12),
    db: Session = Depends(get_db),
):
    if year is None or month is None:
        year, month = roster.next_month()
    return roster.preview_month(db, year, month)


@router.post("/schedule-generation/generate-monthly", response_model=schemas.GenerationResult)
def generate_next_month(_: bool = Depends(require_admin), db: Session = Depends(get_db)):
    year, month = roster.next_month()
    return roster.generate_month(db, year, month)


@router.post("/schedule-generation/generate-for-month", response_model=schemas.GenerationResult)
def generate_for_month(req: schemas.GenerationRequest, _: bool = Depends(require_admin), db: Session = Depends(get_db)):
    return roster.generate_month(db, req.year, req.month)
