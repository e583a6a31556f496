# app/services/clock.py
from __future__ import annotations
from datetime import date, datetime

import pytz

from ..config import settings


def _local_tz():
    return pytz.timezone(settings.TIMEZONE)


def local_now() -> datetime:
    return datetime.now(_local_tz())


def local_today() -> date:
    """'Hoy' en la TZ de la clínica; es el reloj contra el que se validan las fechas."""
    return local_now().date()


def utcnow() -> datetime:
    # Naive UTC: es lo que guardamos en columnas DateTime sin zona
    return datetime.utcnow()
