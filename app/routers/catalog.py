from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from .. import schemas
from ..services import directory, doctor_shifts, shift_catalog
from ..services.clock import local_today
from .deps import parse_date

router = APIRouter(prefix="", tags=["catalog"])


@router.get("/shifts", response_model=list[schemas.ShiftOut])
def list_shifts(db: Session = Depends(get_db)):
    return [shift_catalog.shift_out(s) for s in shift_catalog.list_shifts(db)]


@router.get("/shifts/schedule", response_model=list[schemas.ScheduleDay])
def shift_schedule(
    start_date: Optional[str] = Query(None, alias="startDate", description="YYYY-MM-DD; por defecto hoy"),
    end_date: Optional[str] = Query(None, alias="endDate", description="YYYY-MM-DD; por defecto 6 días después"),
    db: Session = Depends(get_db),
):
    start = parse_date(start_date, "startDate") if start_date else local_today()
    end = parse_date(end_date, "endDate") if end_date else start + timedelta(days=6)
    return doctor_shifts.schedule(db, start, end)


@router.get("/shifts/{shift_id}", response_model=schemas.ShiftOut)
def get_shift(shift_id: int, db: Session = Depends(get_db)):
    return shift_catalog.shift_out(shift_catalog.get_shift(db, shift_id))


@router.get("/specialties", response_model=list[schemas.SpecialtyOut])
def list_specialties(db: Session = Depends(get_db)):
    return [schemas.SpecialtyOut.model_validate(s) for s in directory.list_specialties(db)]


@router.get("/specialties/{specialty_id}/doctors", response_model=schemas.SpecialtyDoctorsOut)
def specialty_doctors(specialty_id: int, db: Session = Depends(get_db)):
    specialty = directory.get_specialty(db, specialty_id)
    doctors = [schemas.DoctorOut.model_validate(d) for d in directory.doctors_by_specialty(db, specialty_id)]
    return schemas.SpecialtyDoctorsOut(
        specialty=schemas.SpecialtyOut.model_validate(specialty),
        doctors=doctors,
        count=len(doctors),
    )
