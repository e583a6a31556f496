# app/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Dict, Optional


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ===== App =====
    APP_NAME: str = "clinic_shift_scheduler"
    ENV: str = "dev"
    # TZ local de la clínica: define qué es "hoy" al validar fechas
    TIMEZONE: str = "Asia/Ho_Chi_Minh"

    # ===== DB =====
    # En producción define DATABASE_URL con tu Postgres. Local puede caer a SQLite.
    DATABASE_URL: str = "sqlite:///./clinic.db"

    # Opciones de pool (solo aplican fuera de SQLite)
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800  # 30 min
    # Loguea queries más lentas que esto (0 = desactivado)
    DB_SLOW_QUERY_SECONDS: float = 1.0

    # ===== Capacidad por turno =====
    # Máximo de citas por (médico, turno, fecha). Overrides por shift_id en JSON:
    #   SHIFT_CAPACITY_OVERRIDES='{"1": 8, "3": 4}'
    SHIFT_CAPACITY_DEFAULT: int = 10
    SHIFT_CAPACITY_OVERRIDES: Dict[int, int] = {}

    # ===== Reprogramación =====
    # Segundos tras los cuales una cancelación a medias puede ser retomada
    RESCHEDULE_LEASE_SECONDS: int = 120

    # ===== Generación de roster =====
    ROSTER_JOB_ENABLED: bool = True
    # Día del mes en que se genera el roster del mes siguiente
    ROSTER_JOB_DAY: int = 25

    # ===== Admin =====
    ADMIN_TOKEN: Optional[str] = None

    def model_post_init(self, __context) -> None:
        """
        Normaliza la capacidad: ningún turno puede quedar con capacidad < 1.
        """
        if self.SHIFT_CAPACITY_DEFAULT < 1:
            self.SHIFT_CAPACITY_DEFAULT = 1
        self.SHIFT_CAPACITY_OVERRIDES = {
            int(k): max(1, int(v)) for k, v in (self.SHIFT_CAPACITY_OVERRIDES or {}).items()
        }


settings = Settings()
