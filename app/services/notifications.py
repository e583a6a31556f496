# app/services/notifications.py
"""
Avisos internos al paciente (campanita de la app). Se guardan en BD; si algo
falla se registra en logs y se sigue: un aviso nunca tumba el flujo que lo pidió.
"""
from __future__ import annotations
import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models
from ..errors import NotFound

logger = logging.getLogger(__name__)

APPOINTMENT_RESCHEDULED = "APPOINTMENT_RESCHEDULED"
APPOINTMENT_NEEDS_ATTENTION = "APPOINTMENT_NEEDS_ATTENTION"


def notify_rescheduled(db: Session, appt: models.Appointment, new_doctor: models.Doctor) -> None:
    """Aviso de cita reasignada a otro médico."""
    body = (
        f"Su cita del {appt.date.isoformat()} fue reasignada al Dr(a). {new_doctor.full_name} "
        "por cancelación del turno original. El horario no cambia."
    )
    _send(db, appt.patient_id, APPOINTMENT_RESCHEDULED, "Cita reasignada", body, appt.id)


def notify_needs_attention(db: Session, appt: models.Appointment) -> None:
    """Aviso de cita que recepción debe reprogramar a mano."""
    body = (
        f"El turno de su cita del {appt.date.isoformat()} fue cancelado. "
        "Recepción le contactará para reprogramarla."
    )
    _send(db, appt.patient_id, APPOINTMENT_NEEDS_ATTENTION, "Cita pendiente de reprogramar", body, appt.id)


def list_for_patient(db: Session, patient_id: int, is_read: Optional[bool] = None) -> List[models.Notification]:
    q = db.query(models.Notification).filter(models.Notification.patient_id == patient_id)
    if is_read is not None:
        q = q.filter(models.Notification.is_read == is_read)
    return q.order_by(models.Notification.created_at.desc(), models.Notification.id.desc()).all()


def mark_read(db: Session, notification_id: int) -> models.Notification:
    n = db.get(models.Notification, notification_id)
    if n is None:
        raise NotFound(f"Notificación {notification_id} no encontrada")
    n.is_read = True
    db.commit()
    db.refresh(n)
    return n

# ------------------ internos ------------------

def _send(db: Session, patient_id: int, kind: str, title: str, body: str, appointment_id: Optional[int]) -> None:
    try:
        db.add(models.Notification(
            patient_id=patient_id,
            type=kind,
            title=title,
            message=body,
            related_appointment_id=appointment_id,
        ))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("No se pudo guardar notificación patient=%s type=%s err=%s", patient_id, kind, e)
        return
    logger.info("notificación %s -> patient=%s appt=%s", kind, patient_id, appointment_id)
