# app/routers/deps.py
from __future__ import annotations
from datetime import date
from typing import Optional

from dateutil import parser as dtparser
from fastapi import Header, HTTPException

from ..config import settings
from ..errors import InvalidRequest


def parse_date(value: Optional[str], field: str = "date") -> date:
    """YYYY-MM-DD → date. Cualquier otra cosa es InvalidRequest."""
    if not value:
        raise InvalidRequest(f"'{field}' es obligatorio (YYYY-MM-DD)")
    try:
        return dtparser.isoparse(value).date()
    except (ValueError, OverflowError):
        raise InvalidRequest(f"Formato de fecha inválido en '{field}'. Usa YYYY-MM-DD.")


def require_admin(x_admin_token: str | None = Header(default=None)) -> bool:
    """Cancelar/reemplazar turnos y generar roster es solo para administración."""
    expected = (settings.ADMIN_TOKEN or "").strip()
    provided = (x_admin_token or "").strip()
    if not expected:
        raise HTTPException(status_code=403, detail="ADMIN_TOKEN no configurado")
    if provided != expected:
        raise HTTPException(status_code=401, detail="Token inválido")
    return True
