from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from .. import schemas
from ..services import cancellation, doctor_shifts, rescheduling
from ..services.clock import local_today
from .deps import parse_date, require_admin

router = APIRouter(prefix="/doctor-shifts", tags=["doctor-shifts"])


@router.post("", response_model=schemas.DoctorShiftOut, status_code=status.HTTP_201_CREATED)
def create_doctor_shift(req: schemas.DoctorShiftCreate, _: bool = Depends(require_admin), db: Session = Depends(get_db)):
    ds = doctor_shifts.create_assignment(db, req.doctor_id, req.shift_id, parse_date(req.work_date, "workDate"))
    return schemas.DoctorShiftOut.from_model(ds)


@router.get("/on-duty", response_model=list[schemas.DoctorOnDuty])
def on_duty(db: Session = Depends(get_db)):
    return doctor_shifts.on_duty(db, local_today())


@router.get("/doctors-by-date", response_model=list[schemas.DoctorWithShifts])
def doctors_by_date(
    work_date: str = Query(..., alias="workDate", description="YYYY-MM-DD"),
    specialty_id: Optional[int] = Query(None, alias="specialtyId"),
    db: Session = Depends(get_db),
):
    return doctor_shifts.doctors_by_date(db, parse_date(work_date, "workDate"), specialty_id)


@router.get("/{assignment_id}", response_model=schemas.DoctorShiftOut)
def get_doctor_shift(assignment_id: int, db: Session = Depends(get_db)):
    return schemas.DoctorShiftOut.from_model(doctor_shifts.get_assignment(db, assignment_id))


@router.get("/{assignment_id}/reschedule-preview", response_model=schemas.CancellationPreview)
def reschedule_preview(assignment_id: int, db: Session = Depends(get_db)):
    return cancellation.preview(db, assignment_id)


@router.post("/{assignment_id}/cancel-and-reschedule", response_model=schemas.RescheduleOutcome)
def cancel_and_reschedule(
    assignment_id: int,
    req: schemas.CancelShiftRequest,
    _: bool = Depends(require_admin),
    db: Session = Depends(get_db),
):
    # Fallos parciales van en el payload; la cancelación en sí siempre responde 200
    return rescheduling.cancel_and_reschedule(db, assignment_id, req.cancel_reason)


@router.post("/{assignment_id}/restore", response_model=schemas.DoctorShiftOut)
def restore(assignment_id: int, _: bool = Depends(require_admin), db: Session = Depends(get_db)):
    return schemas.DoctorShiftOut.from_model(doctor_shifts.restore(db, assignment_id))


@router.post("/{assignment_id}/replace", response_model=schemas.DoctorShiftOut)
def replace(
    assignment_id: int,
    req: schemas.ReplaceShiftRequest,
    _: bool = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return schemas.DoctorShiftOut.from_model(doctor_shifts.replace(db, assignment_id, req.substitute_doctor_id))
