"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from pythonjsonlogger import jsonlogger


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = "pledge-ledger"


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


def log_plan_mutation(
    request_id: str,
    operation: str,
    plan_id: int,
    pledge_id: int,
    distribution_type: str,
    number_of_installments: int,
    duration_ms: float,
    warnings: Optional[List[str]] = None,
) -> None:
    """Log structured plan create/update outcome"""
    logging.info(
        f"Payment plan {operation} completed",
        extra={
            "request_id": request_id,
            "step": f"plan_{operation}",
            "plan_id": plan_id,
            "pledge_id": pledge_id,
            "distribution_type": distribution_type,
            "number_of_installments": number_of_installments,
            "warnings": warnings or [],
            "duration_ms": duration_ms,
        },
    )


def log_payment_mutation(
    request_id: str,
    operation: str,
    payment_id: int,
    shape: str,
    pledge_ids: List[int],
    duration_ms: float,
    warnings: Optional[List[str]] = None,
) -> None:
    """Log structured payment create/update outcome"""
    logging.info(
        f"Payment {operation} completed",
        extra={
            "request_id": request_id,
            "step": f"payment_{operation}",
            "payment_id": payment_id,
            "shape": shape,  # direct | split
            "pledge_ids": sorted(pledge_ids),
            "warnings": warnings or [],
            "duration_ms": duration_ms,
        },
    )


def log_rejection(request_id: str, operation: str, errors: List[Dict[str, Any]]) -> None:
    """Log a mutation refused for business-rule violations"""
    logging.warning(
        f"{operation} rejected",
        extra={
            "request_id": request_id,
            "step": "mutation_rejected",
            "operation": operation,
            "errors": errors,
        },
    )
