"""Structured JSON logging: one JSON object per line, tagged with the service name"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

# Per-request INFO lines from the HTTP client would drown the evaluation log
NOISY_LOGGERS = ("httpx", "httpcore")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Adds UTC timestamp, level and service name to every record"""

    def __init__(self, *args, service_name: str = "agriverify-gateway", **kwargs):
        super().__init__(*args, **kwargs)
        self.service_name = service_name

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = self.service_name


def setup_logging(level: str = "INFO", service_name: str = "agriverify-gateway") -> None:
    """Route the root logger to stdout as JSON"""
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s", service_name=service_name)
    )
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def log_evaluation(
    application_id: str,
    status: str,
    fraud_score: Optional[int],
    risk_tier: Optional[str],
    duration_ms: float,
) -> None:
    """Log structured evaluation outcome for analysis"""
    logging.info(
        "Evaluation finished",
        extra={
            "application_id": application_id,
            "step": "evaluation_complete",
            "status": status,
            "fraud_score": fraud_score,
            "risk_tier": risk_tier,
            "duration_ms": duration_ms,
        },
    )


def log_provider_failure(application_id: str, provider: str, reason: str) -> None:
    logging.warning(
        f"Evidence provider failed: {reason}",
        extra={
            "application_id": application_id,
            "step": "evidence",
            "provider": provider,
        },
    )
