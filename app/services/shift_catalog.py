# app/services/shift_catalog.py
from __future__ import annotations
import logging
from typing import List

from sqlalchemy.orm import Session

from ..config import settings
from ..errors import NotFound
from .. import models, schemas

logger = logging.getLogger(__name__)


def capacity_for(shift_id: int) -> int:
    """Máximo de citas por (médico, turno, fecha); viene de configuración."""
    return settings.SHIFT_CAPACITY_OVERRIDES.get(shift_id, settings.SHIFT_CAPACITY_DEFAULT)


def list_shifts(db: Session) -> List[models.Shift]:
    return db.query(models.Shift).order_by(models.Shift.start_time.asc(), models.Shift.id.asc()).all()


def get_shift(db: Session, shift_id: int) -> models.Shift:
    shift = db.get(models.Shift, shift_id)
    if shift is None:
        raise NotFound(f"Turno {shift_id} no encontrado")
    return shift


def shift_out(shift: models.Shift) -> schemas.ShiftOut:
    return schemas.ShiftOut(
        id=shift.id,
        name=shift.name,
        start_time=shift.start_time,
        end_time=shift.end_time,
        description=shift.description,
        capacity=capacity_for(shift.id),
    )
