# app/routers/admin.py
from __future__ import annotations
from fastapi import APIRouter, Depends
from datetime import datetime
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from .. import models
from ..services.clock import local_today

router = APIRouter(tags=["admin"])

# (recuerda: main.py monta este router con prefix="/admin")


@router.get("/ping")
def admin_ping():
    return {"ok": True, "ts": datetime.utcnow().isoformat()}


@router.get("/health")
def admin_health(db: Session = Depends(get_db)):
    active_today = (
        db.query(func.count(models.DoctorShift.id))
        .filter(models.DoctorShift.work_date == local_today())
        .filter(models.DoctorShift.status == models.DoctorShiftStatus.ACTIVE)
        .scalar()
    )
    return {
        "ok": True,
        "app": settings.APP_NAME,
        "env": settings.ENV,
        "tz": settings.TIMEZONE,
        "today": local_today().isoformat(),
        "shift_capacity_default": settings.SHIFT_CAPACITY_DEFAULT,
        "active_doctor_shifts_today": int(active_today or 0),
        "ts": datetime.utcnow().isoformat(),
    }
