# app/services/doctor_shifts.py
"""
Registro de turnos asignados a médicos (doctor_shifts) y su máquina de estados:

    ACTIVE ──► CANCELLED   (terminal)
    ACTIVE ──► REPLACED    (terminal; otro médico cubre sus citas)

Toda transición es compare-and-set sobre status='ACTIVE'. Para "reactivar"
se crea una fila nueva (id nuevo), nunca se vuelve atrás una existente.
"""
from __future__ import annotations
import logging
from datetime import date, timedelta
from typing import Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import InvalidRequest, InvalidState, NotFound, SlotUnavailable
from . import directory, shift_catalog, slots
from .clock import utcnow

logger = logging.getLogger(__name__)

ACTIVE = models.DoctorShiftStatus.ACTIVE


def _for_share(query, db: Session):
    # SQLite no soporta SELECT ... FOR SHARE; ahí el lock de escritura ya serializa
    if db.get_bind().dialect.name == "sqlite":
        return query
    return query.with_for_update(read=True)


# ──────────────────────────────────────────────────────────────────────────────
# Lecturas
# ──────────────────────────────────────────────────────────────────────────────
def get_assignment(db: Session, assignment_id: int) -> models.DoctorShift:
    ds = db.get(models.DoctorShift, assignment_id, populate_existing=True)
    if ds is None:
        raise NotFound(f"Turno de médico {assignment_id} no encontrado")
    return ds


def find_active(db: Session, doctor_id: int, shift_id: int, work_date: date,
                lock: bool = False) -> Optional[models.DoctorShift]:
    q = (
        db.query(models.DoctorShift)
        .filter(models.DoctorShift.doctor_id == doctor_id)
        .filter(models.DoctorShift.shift_id == shift_id)
        .filter(models.DoctorShift.work_date == work_date)
        .filter(models.DoctorShift.status == ACTIVE)
    )
    if lock:
        q = _for_share(q, db)
    return q.first()


def on_duty(db: Session, day: date) -> List[schemas.DoctorOnDuty]:
    rows = (
        db.query(models.DoctorShift, models.Doctor, models.Specialty, models.Shift)
        .join(models.Doctor, models.Doctor.id == models.DoctorShift.doctor_id)
        .join(models.Specialty, models.Specialty.id == models.Doctor.specialty_id)
        .join(models.Shift, models.Shift.id == models.DoctorShift.shift_id)
        .filter(models.DoctorShift.work_date == day)
        .filter(models.DoctorShift.status == ACTIVE)
        .order_by(models.Shift.start_time.asc(), models.Doctor.id.asc())
        .all()
    )
    return [
        schemas.DoctorOnDuty(
            id=doc.id,
            doctor_code=doc.doctor_code,
            full_name=doc.full_name,
            specialty=spec.name,
            shift=shift_catalog.shift_out(shift),
            work_date=ds.work_date,
        )
        for ds, doc, spec, shift in rows
    ]


def doctors_by_date(db: Session, work_date: date, specialty_id: Optional[int] = None) -> List[schemas.DoctorWithShifts]:
    """
    Médicos con turno ACTIVE ese día, agrupados por médico, con cupo máximo,
    reservas actuales y si el turno está lleno (para pintar "agotado").
    """
    from .availability import slot_loads  # evita import circular

    if specialty_id is not None:
        directory.get_specialty(db, specialty_id)

    loads = slot_loads(db, work_date, specialty_id=specialty_id)
    grouped: Dict[int, schemas.DoctorWithShifts] = {}
    for load in loads:
        doctor = directory.get_doctor(db, load.doctor_id)
        shift = shift_catalog.get_shift(db, load.shift_id)
        entry = grouped.get(doctor.id)
        if entry is None:
            entry = schemas.DoctorWithShifts(doctor=schemas.DoctorOut.model_validate(doctor), shifts=[], shift_count=0)
            grouped[doctor.id] = entry
        entry.shifts.append(schemas.DoctorDayShift(
            doctor_shift_id=load.assignment_id,
            shift=shift_catalog.shift_out(shift),
            work_date=work_date,
            status=ACTIVE.value,
            max_slots=load.capacity,
            current_bookings=load.booked,
            is_full=load.remaining <= 0,
        ))
        entry.shift_count = len(entry.shifts)
    return list(grouped.values())


SCHEDULE_MAX_DAYS = 31


def schedule(db: Session, start: date, end: date) -> List[schemas.ScheduleDay]:
    """Vista de calendario: fecha → turno → médicos ACTIVE. Días sin turnos no aparecen."""
    if end < start:
        raise InvalidRequest("endDate no puede ser anterior a startDate")
    if (end - start).days >= SCHEDULE_MAX_DAYS:
        raise InvalidRequest(f"El rango máximo es de {SCHEDULE_MAX_DAYS} días")

    from .availability import slot_loads  # evita import circular

    days: List[schemas.ScheduleDay] = []
    day = start
    while day <= end:
        by_shift: Dict[int, schemas.ScheduleShift] = {}
        for load in slot_loads(db, day):
            entry = by_shift.get(load.shift_id)
            if entry is None:
                entry = schemas.ScheduleShift(shift=shift_catalog.shift_out(shift_catalog.get_shift(db, load.shift_id)),
                                              doctors=[])
                by_shift[load.shift_id] = entry
            doctor = directory.get_doctor(db, load.doctor_id)
            entry.doctors.append(schemas.ScheduleDoctor(
                id=doctor.id,
                full_name=doctor.full_name,
                doctor_code=doctor.doctor_code,
                remaining_capacity=max(load.remaining, 0),
            ))
        if by_shift:
            shifts = sorted(by_shift.values(), key=lambda s: (s.shift.start_time, s.shift.id))
            days.append(schemas.ScheduleDay(date=day, shifts=shifts))
        day += timedelta(days=1)
    return days


# ──────────────────────────────────────────────────────────────────────────────
# Alta (gestión de roster)
# ──────────────────────────────────────────────────────────────────────────────
def create_assignment(db: Session, doctor_id: int, shift_id: int, work_date: date) -> models.DoctorShift:
    if work_date is None:
        raise InvalidRequest("workDate es obligatorio")
    directory.get_doctor(db, doctor_id)
    shift_catalog.get_shift(db, shift_id)

    if find_active(db, doctor_id, shift_id, work_date):
        raise InvalidState("El médico ya tiene ese turno ACTIVE en esa fecha")

    ds = models.DoctorShift(doctor_id=doctor_id, shift_id=shift_id, work_date=work_date, status=ACTIVE)
    db.add(ds)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise InvalidState("El médico ya tiene ese turno ACTIVE en esa fecha")
    db.refresh(ds)
    logger.info("doctor_shift creado id=%s doctor=%s shift=%s date=%s", ds.id, doctor_id, shift_id, work_date)
    return ds


# ──────────────────────────────────────────────────────────────────────────────
# Transiciones (compare-and-set)
# ──────────────────────────────────────────────────────────────────────────────
def mark_cancelled(db: Session, assignment_id: int, reason: str) -> bool:
    """
    ACTIVE → CANCELLED. Hace commit. Devuelve False si la fila ya no estaba
    ACTIVE (otra petición ganó o ya estaba cancelada).
    """
    now = utcnow()
    res = db.execute(
        update(models.DoctorShift)
        .where(models.DoctorShift.id == assignment_id)
        .where(models.DoctorShift.status == ACTIVE)
        .values(
            status=models.DoctorShiftStatus.CANCELLED,
            cancel_reason=reason or None,
            cancelled_at=now,
            reschedule_started_at=now,
            reschedule_completed_at=None,
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return res.rowcount == 1


def claim_stale_reschedule(db: Session, assignment_id: int, lease_seconds: int) -> bool:
    """
    Retoma una cancelación que quedó a medias (p.ej. el llamador hizo timeout
    tras el commit del paso 1). Solo gana si la marca de inicio es más vieja que
    el lease y el reprogramado no terminó; hace commit.
    """
    now = utcnow()
    ds = get_assignment(db, assignment_id)
    if ds.status != models.DoctorShiftStatus.CANCELLED or ds.reschedule_completed_at is not None:
        return False
    seen = ds.reschedule_started_at
    if seen is not None and seen > now - timedelta(seconds=lease_seconds):
        return False

    q = (
        update(models.DoctorShift)
        .where(models.DoctorShift.id == assignment_id)
        .where(models.DoctorShift.status == models.DoctorShiftStatus.CANCELLED)
        .where(models.DoctorShift.reschedule_completed_at.is_(None))
    )
    q = q.where(models.DoctorShift.reschedule_started_at == seen) if seen is not None \
        else q.where(models.DoctorShift.reschedule_started_at.is_(None))
    res = db.execute(q.values(reschedule_started_at=now).execution_options(synchronize_session=False))
    db.commit()
    return res.rowcount == 1


def mark_reschedule_completed(db: Session, assignment_id: int) -> None:
    db.execute(
        update(models.DoctorShift)
        .where(models.DoctorShift.id == assignment_id)
        .values(reschedule_completed_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.commit()


def restore(db: Session, assignment_id: int) -> models.DoctorShift:
    """
    Reactiva un turno CANCELLED creando una asignación nueva para el mismo
    (médico, turno, fecha). La fila vieja queda CANCELLED como historial.
    """
    old = get_assignment(db, assignment_id)
    if old.status != models.DoctorShiftStatus.CANCELLED:
        raise InvalidState(f"Solo se puede restaurar un turno CANCELLED (estado actual: {old.status.value})")
    if old.reschedule_completed_at is None:
        raise InvalidState("La cancelación de este turno aún se está procesando")
    return create_assignment(db, old.doctor_id, old.shift_id, old.work_date)


def replace(db: Session, assignment_id: int, substitute_doctor_id: int) -> models.DoctorShift:
    """
    ACTIVE → REPLACED: crea el turno del médico sustituto (misma especialidad,
    mismo turno y fecha) y le traspasa todas las citas activas con su cupo.
    Todo o nada, en una sola transacción.
    """
    old = get_assignment(db, assignment_id)
    if old.status != ACTIVE:
        raise InvalidState(f"Solo se puede reemplazar un turno ACTIVE (estado actual: {old.status.value})")
    if substitute_doctor_id == old.doctor_id:
        raise InvalidRequest("El sustituto debe ser otro médico")

    original = directory.get_doctor(db, old.doctor_id)
    substitute = directory.get_doctor(db, substitute_doctor_id)
    if substitute.specialty_id != original.specialty_id:
        raise InvalidRequest("El sustituto debe ser de la misma especialidad")

    doctor_id, shift_id, work_date = old.doctor_id, old.shift_id, old.work_date
    try:
        # Mismo orden de locks que booking._claim_slot: contador, luego turno
        slots.lock(db, doctor_id, shift_id, work_date)
        res = db.execute(
            update(models.DoctorShift)
            .where(models.DoctorShift.id == assignment_id)
            .where(models.DoctorShift.status == ACTIVE)
            .values(status=models.DoctorShiftStatus.REPLACED)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            raise InvalidState("El turno cambió de estado mientras se reemplazaba")

        new = models.DoctorShift(doctor_id=substitute.id, shift_id=shift_id, work_date=work_date, status=ACTIVE)
        db.add(new)
        db.flush()

        moved = (
            db.query(models.Appointment)
            .filter(models.Appointment.doctor_id == doctor_id)
            .filter(models.Appointment.shift_id == shift_id)
            .filter(models.Appointment.date == work_date)
            .filter(models.Appointment.status.in_(models.ACTIVE_APPOINTMENT_STATUSES))
            .all()
        )
        if moved:
            if not slots.take(db, substitute.id, shift_id, work_date, count=len(moved)):
                raise SlotUnavailable("El sustituto no tiene cupo para todas las citas del turno")
            slots.release(db, doctor_id, shift_id, work_date, count=len(moved))
            for appt in moved:
                appt.doctor_id = substitute.id

        db.execute(
            update(models.DoctorShift)
            .where(models.DoctorShift.id == assignment_id)
            .values(replaced_by_id=new.id)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        raise InvalidState("El sustituto ya tiene ese turno ACTIVE en esa fecha")
    except (InvalidState, SlotUnavailable):
        db.rollback()
        raise

    db.refresh(new)
    logger.info("doctor_shift %s REPLACED por %s (doctor %s → %s, %s citas)",
                assignment_id, new.id, doctor_id, substitute.id, len(moved))
    return new
