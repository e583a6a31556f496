from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from .. import schemas
from ..services import notifications

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[schemas.NotificationOut])
def list_notifications(
    patient_id: int = Query(..., alias="patientId"),
    is_read: Optional[bool] = Query(None, alias="isRead"),
    db: Session = Depends(get_db),
):
    return [schemas.NotificationOut.model_validate(n) for n in notifications.list_for_patient(db, patient_id, is_read)]


@router.put("/{notification_id}/read", response_model=schemas.NotificationOut)
def mark_read(notification_id: int, db: Session = Depends(get_db)):
    return schemas.NotificationOut.model_validate(notifications.mark_read(db, notification_id))
