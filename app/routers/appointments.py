from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from .. import models, schemas
from ..errors import InvalidRequest
from ..services import availability, booking
from .deps import parse_date

router = APIRouter(prefix="", tags=["appointments"])


@router.get("/availability", response_model=list[schemas.AvailabilityEntry])
def get_availability(
    specialty_id: int = Query(..., alias="specialtyId"),
    date: str = Query(..., description="YYYY-MM-DD"),
    db: Session = Depends(get_db),
):
    d = parse_date(date)
    return [
        schemas.AvailabilityEntry(doctor_id=s.doctor_id, shift_template_id=s.shift_id, remaining_capacity=s.remaining)
        for s in availability.resolve(db, specialty_id, d)
    ]


@router.post("/appointments", response_model=schemas.AppointmentOut, status_code=status.HTTP_201_CREATED)
def book(req: schemas.BookRequest, db: Session = Depends(get_db)):
    if req.patient_id is None:
        raise InvalidRequest("patientId es obligatorio")
    appt = booking.allocate(
        db,
        doctor_id=req.doctor_id,
        shift_id=req.shift_template_id,
        day=parse_date(req.date),
        patient_id=req.patient_id,
        symptom_initial=req.symptom_initial,
    )
    return schemas.AppointmentOut.from_model(appt)


@router.get("/appointments", response_model=list[schemas.AppointmentOut])
def list_appointments(
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    doctor_id: Optional[int] = Query(None, alias="doctorId"),
    shift_id: Optional[int] = Query(None, alias="shiftId"),
    patient_id: Optional[int] = Query(None, alias="patientId"),
    status_: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(get_db),
):
    st = None
    if status_:
        try:
            st = models.AppointmentStatus(status_.upper())
        except ValueError:
            raise InvalidRequest(f"Estado desconocido: {status_}")
    appts = booking.list_appointments(
        db,
        day=parse_date(date) if date else None,
        doctor_id=doctor_id,
        shift_id=shift_id,
        status=st,
        patient_id=patient_id,
    )
    return [schemas.AppointmentOut.from_model(a) for a in appts]


@router.get("/appointments/{appointment_id}", response_model=schemas.AppointmentOut)
def get_appointment(appointment_id: int, db: Session = Depends(get_db)):
    return schemas.AppointmentOut.from_model(booking.get_appointment(db, appointment_id))


@router.put("/appointments/{appointment_id}", response_model=schemas.AppointmentOut)
def reschedule(appointment_id: int, req: schemas.AppointmentUpdateRequest, db: Session = Depends(get_db)):
    appt = booking.update_appointment(
        db,
        appointment_id,
        doctor_id=req.doctor_id,
        shift_id=req.shift_template_id,
        day=parse_date(req.date) if req.date else None,
    )
    return schemas.AppointmentOut.from_model(appt)


@router.put("/appointments/{appointment_id}/confirm", response_model=schemas.AppointmentOut)
def confirm(appointment_id: int, db: Session = Depends(get_db)):
    return schemas.AppointmentOut.from_model(booking.confirm(db, appointment_id))


@router.put("/appointments/{appointment_id}/cancel", response_model=schemas.AppointmentOut)
def cancel(appointment_id: int, req: Optional[schemas.AppointmentCancelRequest] = None, db: Session = Depends(get_db)):
    reason = req.reason if req else None
    return schemas.AppointmentOut.from_model(booking.cancel(db, appointment_id, reason))


@router.put("/appointments/{appointment_id}/complete", response_model=schemas.AppointmentOut)
def complete(appointment_id: int, db: Session = Depends(get_db)):
    return schemas.AppointmentOut.from_model(booking.complete(db, appointment_id))
