# app/services/rescheduling.py
"""
Cancelación de un turno de médico con reprogramación automática de sus citas.

1. ACTIVE → CANCELLED (compare-and-set, commit propio). La cancelación siempre
   queda; lo que venga después no la revierte.
2. Se recalcula la lista de citas afectadas desde la BD (nunca desde un
   preview viejo).
3. Cada cita se intenta mover a otro médico de la misma especialidad, mismo
   turno y fecha, en su propia transacción. Si no se puede, queda intacta y se
   reporta FAILED para que recepción la gestione.
4. Se devuelven los totales.
"""
from __future__ import annotations
import logging
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..config import settings
from ..errors import InvalidState, SchedulingError
from . import availability, booking, cancellation, directory, doctor_shifts, notifications

logger = logging.getLogger(__name__)

RESCHEDULED = "RESCHEDULED"
FAILED = "FAILED"


def _reschedule_one(db: Session, appt: models.Appointment, assignment: models.DoctorShift,
                    specialty_id: int) -> schemas.AppointmentOutcome:
    candidates = availability.replacement_candidates(
        db, specialty_id, appt.shift_id, appt.date, exclude_doctor_id=assignment.doctor_id, needed=1,
    )
    if not candidates:
        return schemas.AppointmentOutcome(
            appointment_id=appt.id, outcome=FAILED,
            reason="No hay médico de reemplazo con cupo en este turno",
        )

    last_error = None
    for candidate in candidates:
        try:
            booking.reallocate(db, appt, candidate.doctor_id)
        except SchedulingError as e:
            # p.ej. el cupo se lo llevó una reserva concurrente: probamos el siguiente
            last_error = e.detail
            logger.info("cita %s no cupo con doctor %s: %s", appt.id, candidate.doctor_id, e.detail)
            continue
        return schemas.AppointmentOutcome(appointment_id=appt.id, outcome=RESCHEDULED, new_doctor_id=candidate.doctor_id)

    return schemas.AppointmentOutcome(appointment_id=appt.id, outcome=FAILED, reason=last_error)


def cancel_and_reschedule(db: Session, assignment_id: int, cancel_reason: str) -> schemas.RescheduleOutcome:
    assignment = doctor_shifts.get_assignment(db, assignment_id)

    # Paso 1
    if not doctor_shifts.mark_cancelled(db, assignment_id, cancel_reason):
        # ¿Reintento de una ejecución que murió tras el commit del paso 1?
        if not doctor_shifts.claim_stale_reschedule(db, assignment_id, settings.RESCHEDULE_LEASE_SECONDS):
            current = doctor_shifts.get_assignment(db, assignment_id)
            raise InvalidState(f"El turno {assignment_id} no está ACTIVE (estado: {current.status.value})")
        logger.warning("doctor_shift %s: retomando reprogramación pendiente", assignment_id)
    else:
        logger.info("doctor_shift %s CANCELLED (motivo: %s)", assignment_id, cancel_reason or "-")

    assignment = doctor_shifts.get_assignment(db, assignment_id)
    specialty_id = directory.get_doctor(db, assignment.doctor_id).specialty_id

    # Paso 2
    affected = cancellation.affected_appointments(db, assignment)

    # Paso 3
    results: List[schemas.AppointmentOutcome] = []
    for appt in affected:
        try:
            outcome = _reschedule_one(db, appt, assignment, specialty_id)
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("cita %s: error de BD al reprogramar", appt.id)
            outcome = schemas.AppointmentOutcome(appointment_id=appt.id, outcome=FAILED, reason=f"Error de BD: {e.__class__.__name__}")
        results.append(outcome)

        if outcome.outcome == RESCHEDULED:
            notifications.notify_rescheduled(db, appt, directory.get_doctor(db, outcome.new_doctor_id))
        else:
            notifications.notify_needs_attention(db, appt)

    # Paso 4
    doctor_shifts.mark_reschedule_completed(db, assignment_id)
    rescheduled = sum(1 for r in results if r.outcome == RESCHEDULED)
    out = schemas.RescheduleOutcome(
        shift_assignment_id=assignment_id,
        total_appointments=len(results),
        rescheduled_count=rescheduled,
        failed_count=len(results) - rescheduled,
        results=results,
    )
    logger.info("doctor_shift %s: %s citas, %s reprogramadas, %s fallidas",
                assignment_id, out.total_appointments, out.rescheduled_count, out.failed_count)
    return out
