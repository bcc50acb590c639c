"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from abaya_bank.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_ledger_event(
    event: str,
    account_number: str,
    transaction_type: str,
    amount_cents: int,
    balance_after_cents: int,
    reference: Optional[str] = None,
) -> None:
    """Log a committed balance change for reconciliation and support"""
    logging.getLogger("abaya_bank.ledger").info(
        event,
        extra={
            "step": "ledger_commit",
            "account_number": account_number,
            "transaction_type": transaction_type,
            "amount_cents": amount_cents,
            "balance_after_cents": balance_after_cents,
            "reference": reference,
        },
    )


def log_emi_run(successful: int, failed: int, duration_ms: float) -> None:
    """Log the summary of an EMI auto-deduction batch"""
    logging.getLogger("abaya_bank.jobs").info(
        "EMI deduction job completed",
        extra={
            "step": "emi_job_complete",
            "successful": successful,
            "failed": failed,
            "duration_ms": duration_ms,
        },
    )
