"""
Centralized logging module for the CityGate backend.

Rules:
- Structured JSON logs suitable for Loki/ELK
- Appropriate log levels (info, warning, error)
- NEVER logs passwords, tokens, password hashes or full request bodies
- Security-sensitive actions emit structured logs with user_id, tenant_id, action, result, timestamp
"""
import logging
import json
from typing import Any, Dict, Optional
from datetime import datetime, timezone
from citygate.core.config import settings

_EXTRA_FIELDS = ("user_id", "tenant_id", "action", "result", "path", "meta")

logger = logging.getLogger("citygate")
logger.setLevel(settings.LOG_LEVEL.upper())


class JSONFormatter(logging.Formatter):
    """Formatter that outputs structured JSON logs."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in _EXTRA_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


_handler = logging.StreamHandler()
_handler.setFormatter(JSONFormatter())
logger.addHandler(_handler)
logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Child of the `citygate` logger, e.g. get_logger("gatekeeper")."""
    return logger.getChild(name)


def log_security_event(
    action: str,
    result: str,
    user_id: Optional[str] = None,
    tenant_id: Optional[str] = None,
    meta: Optional[Dict[str, Any]] = None,
    level: str = "info",
) -> None:
    """
    Log a security-sensitive action (login, grant change, role change, denial).

    Args:
        action: Action name (e.g., "login", "grant_access", "gatekeeper")
        result: Result status (e.g., "success", "failure", "denied")
        user_id: Acting or affected user (optional)
        tenant_id: Tenant the action is scoped to (optional)
        meta: Additional non-sensitive metadata (optional)
        level: Log level ("debug", "info", "warning", "error")
    """
    log_method = getattr(logger, level.lower(), logger.info)
    extra: Dict[str, Any] = {"action": action, "result": result}
    if user_id:
        extra["user_id"] = user_id
    if tenant_id:
        extra["tenant_id"] = tenant_id
    if meta:
        extra["meta"] = meta

    log_method("Security event", extra=extra)
