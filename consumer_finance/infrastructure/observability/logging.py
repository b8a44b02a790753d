"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger.json import JsonFormatter

from consumer_finance.config import settings


class CustomJsonFormatter(JsonFormatter):
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


def log_onboarding(consumer_id: str, source: str, duration_ms: float) -> None:
    """Log onboarding outcome; never includes sensitive fields"""
    logging.getLogger("consumer_finance.onboarding").info(
        "Consumer onboarded",
        extra={
            "consumer_id": consumer_id,
            "step": "onboarding_complete",
            "source": source,
            "duration_ms": duration_ms,
        },
    )


def log_link(resource: str, consumer_id: str, resource_id: str, created: bool, vendor_id: Optional[str] = None) -> None:
    """Log the outcome of an idempotent account creation"""
    logging.getLogger("consumer_finance.linking").info(
        "Account linked" if created else "Existing account returned",
        extra={
            "resource": resource,
            "consumer_id": consumer_id,
            "resource_id": resource_id,
            "vendor_id": vendor_id,
            "outcome": "created" if created else "existing",
        },
    )


def log_decision(application_id: str, consumer_id: str, decision: str, staff_id: str, duration_ms: float) -> None:
    """Log structured decision outcome for audit analysis"""
    logging.getLogger("consumer_finance.decisions").info(
        "Decision recorded",
        extra={
            "application_id": application_id,
            "consumer_id": consumer_id,
            "step": "decision_complete",
            "decision": decision,
            "staff_id": staff_id,
            "duration_ms": duration_ms,
        },
    )
