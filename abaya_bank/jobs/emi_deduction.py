"""Monthly EMI auto-deduction job"""

import logging
import time
from datetime import date
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session

from abaya_bank.config import Settings
from abaya_bank.domain.exceptions import DomainException, InsufficientFundsError
from abaya_bank.domain.models import EmiRunResult
from abaya_bank.infrastructure.database.session import SessionLocal
from abaya_bank.infrastructure.observability.logging import log_emi_run
from abaya_bank.infrastructure.observability.metrics import emi_deduction_counter, emi_job_duration_histogram
from abaya_bank.services.loans import deduct_emi, due_loans
from abaya_bank.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


def run_emi_deduction(
    session_factory: Callable[[], Session] = SessionLocal,
    today: Optional[date] = None,
    db: Optional[Session] = None,
) -> EmiRunResult:
    """
    Deduct the due EMI of every repaying loan.

    Each loan is settled in its own database transaction; a loan that
    cannot be collected is recorded in the result and the batch moves on.
    A session passed in by the caller is left open.
    """
    start_time = time.time()
    today = today or utcnow().date()
    result = EmiRunResult()

    owns_session = db is None
    if owns_session:
        db = session_factory()
    try:
        loans = [(loan.id, loan.loan_number) for loan in due_loans(db, today)]
        logger.info("Starting EMI auto-deduction", extra={"due_loans": len(loans), "run_date": today.isoformat()})

        for loan_id, loan_number in loans:
            try:
                deduct_emi(db, loan_id, today)
                result.successful += 1
            except DomainException as e:
                if not isinstance(e, InsufficientFundsError):
                    emi_deduction_counter.labels(outcome="failed").inc()
                result.failed += 1
                result.errors.append({"loan_number": loan_number, "error": e.message})
                logger.warning(f"EMI deduction failed: {e.message}", extra={"loan_number": loan_number})
            except Exception as e:
                db.rollback()
                emi_deduction_counter.labels(outcome="failed").inc()
                result.failed += 1
                result.errors.append({"loan_number": loan_number, "error": str(e)})
                logger.exception("Unexpected error during EMI deduction", extra={"loan_number": loan_number})
    finally:
        if owns_session:
            db.close()

    duration = time.time() - start_time
    emi_job_duration_histogram.observe(duration)
    log_emi_run(result.successful, result.failed, duration * 1000)
    return result


def create_scheduler(config: Settings) -> BackgroundScheduler:
    """Background scheduler firing the EMI job on the configured cron schedule"""
    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.add_job(
        run_emi_deduction,
        "cron",
        day=config.emi_cron_day,
        hour=config.emi_cron_hour,
        minute=config.emi_cron_minute,
        id="emi_deduction",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    return scheduler
