# app/services/cancellation.py
from __future__ import annotations
import logging
from typing import List

from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import InvalidState
from . import availability, directory, doctor_shifts

logger = logging.getLogger(__name__)


def affected_appointments(db: Session, assignment: models.DoctorShift) -> List[models.Appointment]:
    """
    Citas PENDING/CONFIRMED atadas al (médico, turno, fecha) de la asignación.
    Sirve igual para una asignación ACTIVE (preview) que para una ya CANCELLED
    (ejecución): se busca por la tupla, no por el estado.
    """
    return (
        db.query(models.Appointment)
        .filter(models.Appointment.doctor_id == assignment.doctor_id)
        .filter(models.Appointment.shift_id == assignment.shift_id)
        .filter(models.Appointment.date == assignment.work_date)
        .filter(models.Appointment.status.in_(models.ACTIVE_APPOINTMENT_STATUSES))
        .order_by(models.Appointment.created_at.asc(), models.Appointment.id.asc())
        .populate_existing()
        .all()
    )


def manual_handling_warning(affected: int) -> str:
    return (f"No hay otro médico de la especialidad con cupo suficiente en este turno: "
            f"{affected} cita(s) requerirán gestión manual.")


def preview(db: Session, assignment_id: int) -> schemas.CancellationPreview:
    """
    Impacto de cancelar un turno, sin tocar nada. Con el mismo estado en BD
    devuelve siempre lo mismo.
    """
    assignment = doctor_shifts.get_assignment(db, assignment_id)
    if assignment.status != models.DoctorShiftStatus.ACTIVE:
        raise InvalidState(f"El turno {assignment_id} no está ACTIVE (estado: {assignment.status.value})")

    affected = len(affected_appointments(db, assignment))
    if affected == 0:
        return schemas.CancellationPreview(
            shift_assignment_id=assignment.id,
            affected_appointment_count=0,
            has_replacement_candidate=False,
            replacement_doctor_id=None,
            can_auto_reschedule=True,
            warning=None,
        )

    doctor = directory.get_doctor(db, assignment.doctor_id)
    candidates = availability.replacement_candidates(
        db, doctor.specialty_id, assignment.shift_id, assignment.work_date,
        exclude_doctor_id=assignment.doctor_id, needed=affected,
    )
    candidate = candidates[0] if candidates else None
    can_auto = candidate is not None

    result = schemas.CancellationPreview(
        shift_assignment_id=assignment.id,
        affected_appointment_count=affected,
        has_replacement_candidate=candidate is not None,
        replacement_doctor_id=candidate.doctor_id if candidate else None,
        can_auto_reschedule=can_auto,
        warning=None if can_auto else manual_handling_warning(affected),
    )
    logger.debug("preview doctor_shift=%s -> %s", assignment_id, result)
    return result
