# app/services/booking.py
from __future__ import annotations
import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from ..errors import InvalidRequest, InvalidState, NotFound, SchedulingError, SlotUnavailable
from . import directory, doctor_shifts, shift_catalog, slots
from .clock import local_today, utcnow

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = models.ACTIVE_APPOINTMENT_STATUSES


def validate_booking_date(day: Optional[date]) -> None:
    if day is None:
        raise InvalidRequest("La fecha es obligatoria")
    if day < local_today():
        raise InvalidRequest(f"No se puede agendar en una fecha pasada ({day.isoformat()})")


def _claim_slot(db: Session, doctor_id: int, shift_id: int, day: date) -> None:
    """
    Dentro de la transacción en curso: toma un cupo del contador y después
    exige turno ACTIVE. El estado se lee con el lock de escritura ya tomado
    (toda la BD en SQLite, la fila del contador en Postgres): una cancelación
    confirmada antes se ve aquí, una posterior encuentra la cita en su paso 2.
    El rollback del llamador deshace el incremento.
    """
    if not slots.take(db, doctor_id, shift_id, day):
        raise SlotUnavailable("El turno ya no tiene cupo disponible")
    if doctor_shifts.find_active(db, doctor_id, shift_id, day, lock=True) is None:
        raise SlotUnavailable("El médico no tiene ese turno activo en esa fecha")


# ──────────────────────────────────────────────────────────────────────────────
# Reserva
# ──────────────────────────────────────────────────────────────────────────────
def allocate(db: Session, doctor_id: int, shift_id: int, day: Optional[date], patient_id: Optional[int],
             symptom_initial: Optional[str] = None) -> models.Appointment:
    """Crea una cita PENDING tomando un cupo del turno; todo en una transacción."""
    if patient_id is None:
        raise InvalidRequest("patientId es obligatorio")
    validate_booking_date(day)
    directory.get_doctor(db, doctor_id)
    shift_catalog.get_shift(db, shift_id)

    try:
        _claim_slot(db, doctor_id, shift_id, day)
        appt = models.Appointment(
            patient_id=patient_id,
            doctor_id=doctor_id,
            shift_id=shift_id,
            date=day,
            status=models.AppointmentStatus.PENDING,
            symptom_initial=symptom_initial or None,
        )
        db.add(appt)
        db.commit()
    except SchedulingError:
        db.rollback()
        raise
    except IntegrityError:
        db.rollback()
        raise SlotUnavailable("El turno ya no tiene cupo disponible")

    db.refresh(appt)
    logger.info("cita creada id=%s patient=%s doctor=%s shift=%s date=%s",
                appt.id, patient_id, doctor_id, shift_id, day)
    return appt


def reallocate(db: Session, appt: models.Appointment, doctor_id: int, shift_id: Optional[int] = None,
               day: Optional[date] = None) -> models.Appointment:
    """
    Mueve una cita activa a otro (médico, turno, fecha) con la misma disciplina
    de cupo que una reserva nueva. Si falla, la cita queda como estaba.
    """
    shift_id = shift_id if shift_id is not None else appt.shift_id
    day = day if day is not None else appt.date
    old = (appt.doctor_id, appt.shift_id, appt.date)
    if old == (doctor_id, shift_id, day):
        return appt
    if appt.status not in ACTIVE_STATUSES:
        raise InvalidState(f"La cita {appt.id} no está activa (estado: {appt.status.value})")
    validate_booking_date(day)

    try:
        _claim_slot(db, doctor_id, shift_id, day)
        res = db.execute(
            update(models.Appointment)
            .where(models.Appointment.id == appt.id)
            .where(models.Appointment.status.in_(ACTIVE_STATUSES))
            .where(models.Appointment.doctor_id == old[0])
            .where(models.Appointment.shift_id == old[1])
            .where(models.Appointment.date == old[2])
            .values(doctor_id=doctor_id, shift_id=shift_id, date=day, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            raise SlotUnavailable(f"La cita {appt.id} cambió mientras se reprogramaba")
        slots.release(db, *old)
        db.commit()
    except SchedulingError:
        db.rollback()
        raise
    except IntegrityError:
        db.rollback()
        raise SlotUnavailable("El turno ya no tiene cupo disponible")

    db.refresh(appt)
    logger.info("cita %s movida %s -> %s", appt.id, old, (doctor_id, shift_id, day))
    return appt


# ──────────────────────────────────────────────────────────────────────────────
# Consultas y ciclo de vida
# ──────────────────────────────────────────────────────────────────────────────
def get_appointment(db: Session, appointment_id: int) -> models.Appointment:
    appt = db.get(models.Appointment, appointment_id, populate_existing=True)
    if appt is None:
        raise NotFound(f"Cita {appointment_id} no encontrada")
    return appt


def list_appointments(db: Session, day: Optional[date] = None, doctor_id: Optional[int] = None,
                      shift_id: Optional[int] = None, status: Optional[models.AppointmentStatus] = None,
                      patient_id: Optional[int] = None) -> List[models.Appointment]:
    q = db.query(models.Appointment)
    if day is not None:
        q = q.filter(models.Appointment.date == day)
    if doctor_id is not None:
        q = q.filter(models.Appointment.doctor_id == doctor_id)
    if shift_id is not None:
        q = q.filter(models.Appointment.shift_id == shift_id)
    if status is not None:
        q = q.filter(models.Appointment.status == status)
    if patient_id is not None:
        q = q.filter(models.Appointment.patient_id == patient_id)
    return q.order_by(models.Appointment.date.asc(), models.Appointment.shift_id.asc(), models.Appointment.id.asc()).all()


def update_appointment(db: Session, appointment_id: int, doctor_id: Optional[int] = None,
                       shift_id: Optional[int] = None, day: Optional[date] = None) -> models.Appointment:
    """Reprogramación manual (recepción): cualquier campo omitido se conserva."""
    appt = get_appointment(db, appointment_id)
    if doctor_id is not None:
        directory.get_doctor(db, doctor_id)
    if shift_id is not None:
        shift_catalog.get_shift(db, shift_id)
    return reallocate(db, appt, doctor_id if doctor_id is not None else appt.doctor_id, shift_id, day)


def _transition(db: Session, appointment_id: int, allowed: tuple, target: models.AppointmentStatus,
                release: bool, reason: Optional[str] = None) -> models.Appointment:
    values = {"status": target, "updated_at": utcnow()}
    if reason is not None:
        values["cancel_reason"] = reason
    res = db.execute(
        update(models.Appointment)
        .where(models.Appointment.id == appointment_id)
        .where(models.Appointment.status.in_(allowed))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        db.rollback()
        appt = get_appointment(db, appointment_id)
        raise InvalidState(f"La cita {appointment_id} no admite pasar de {appt.status.value} a {target.value}")

    appt = get_appointment(db, appointment_id)
    if release:
        slots.release(db, appt.doctor_id, appt.shift_id, appt.date)
    db.commit()
    db.refresh(appt)
    logger.info("cita %s -> %s", appointment_id, target.value)
    return appt


def confirm(db: Session, appointment_id: int) -> models.Appointment:
    return _transition(db, appointment_id, (models.AppointmentStatus.PENDING,),
                       models.AppointmentStatus.CONFIRMED, release=False)


def cancel(db: Session, appointment_id: int, reason: Optional[str] = None) -> models.Appointment:
    return _transition(db, appointment_id, ACTIVE_STATUSES, models.AppointmentStatus.CANCELLED,
                       release=True, reason=reason or "")


def complete(db: Session, appointment_id: int) -> models.Appointment:
    return _transition(db, appointment_id, ACTIVE_STATUSES, models.AppointmentStatus.COMPLETED, release=True)
