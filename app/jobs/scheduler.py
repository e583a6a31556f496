from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import Session
import logging

from ..database import SessionLocal
from ..config import settings
from ..errors import SchedulingError
from ..services.roster import generate_month, next_month

logger = logging.getLogger(__name__)


def monthly_roster_job():
    year, month = next_month()
    db: Session = SessionLocal()
    try:
        result = generate_month(db, year, month)
        logger.info("Job roster %04d-%02d: generados=%s omitidos=%s", year, month, result.generated, result.skipped)
    except SchedulingError as e:
        logger.warning("Job roster %04d-%02d no completado: %s", year, month, e.detail)
    finally:
        db.close()


def start_scheduler():
    scheduler = BackgroundScheduler(timezone=settings.TIMEZONE)
    # Una vez al mes, de madrugada
    scheduler.add_job(monthly_roster_job, CronTrigger(day=settings.ROSTER_JOB_DAY, hour=2, minute=0))
    scheduler.start()
    return scheduler
