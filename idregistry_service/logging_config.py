"""
Structured logging for the registry service.

Every line is one JSON object. Registry events go through AuditLogger, which
tags them with an event type and the id of the request being served.
Identity names are personal data and are never logged verbatim.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, Optional

from idregistry.util import sha256_hex

request_id_var: ContextVar[str] = ContextVar("registry_request_id", default="")

PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

SEVERITY_LEVELS = {
    "low": logging.INFO,
    "medium": logging.WARNING,
    "high": logging.ERROR,
    "critical": logging.CRITICAL,
}


class StructuredFormatter(logging.Formatter):
    """Render a LogRecord as a single JSON line."""

    converter = time.gmtime

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%SZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        entry.update(getattr(record, "extra_fields", {}))
        if "request_id" not in entry and request_id_var.get():
            entry["request_id"] = request_id_var.get()
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def sanitize_name(name: str) -> str:
    """Length and hash prefix of an identity name, safe to log."""
    return f"len={len(name)} sha256={sha256_hex(name)[:12]}"


class AuditLogger:
    """Registry domain events."""

    def __init__(self, name: str = "idregistry.audit"):
        self._logger = logging.getLogger(name)

    def event(self, level: int, event_type: str, message: str, **fields: Any) -> None:
        fields["event_type"] = event_type
        rid = request_id_var.get()
        if rid:
            fields["request_id"] = rid
        self._logger.log(level, "%s: %s", event_type, message, extra={"extra_fields": fields})

    def registry_bootstrapped(self, admin: str, backend: str) -> None:
        self.event(logging.INFO, "REGISTRY_BOOTSTRAPPED", f"registry created by {admin}",
                   admin=admin, backend=backend)

    def identity_registered(self, principal: str, name: str) -> None:
        self.event(logging.INFO, "IDENTITY_REGISTERED", f"identity registered for {principal}",
                   principal=principal, name=sanitize_name(name))

    def registration_rejected(self, principal: str, reason: str) -> None:
        self.event(logging.WARNING, "REGISTRATION_REJECTED", reason,
                   principal=principal, reason=reason)

    def identity_attested(self, target: str, attester: str, attested_at: int) -> None:
        self.event(logging.INFO, "IDENTITY_ATTESTED", f"{target} attested by {attester}",
                   target=target, attester=attester, attested_at=attested_at,
                   self_attested=target == attester)

    def attestation_rejected(self, target: str, attester: str, reason: str) -> None:
        self.event(logging.WARNING, "ATTESTATION_REJECTED", reason,
                   target=target, attester=attester, reason=reason)

    def lookup_miss(self, target: str) -> None:
        self.event(logging.INFO, "LOOKUP_MISS", f"no identity for {target}", target=target)

    def security_event(self, event: str, severity: str = "medium", **details: Any) -> None:
        level = SEVERITY_LEVELS.get(severity, logging.WARNING)
        self.event(level, "SECURITY_EVENT", event,
                   security_event=event, severity=severity, **details)

    def rate_limit_exceeded(self, client_id: str, endpoint: str) -> None:
        self.event(logging.WARNING, "RATE_LIMIT_EXCEEDED", f"{client_id} on {endpoint}",
                   client_id=client_id, endpoint=endpoint)


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None
) -> None:
    """Install stdout (and optionally file) handlers on the root logger."""
    formatter = StructuredFormatter() if json_format else logging.Formatter(PLAIN_FORMAT)
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(formatter)
    logging.basicConfig(level=level.upper(), handlers=handlers, force=True)


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind a request id (generated when absent) to the current context."""
    request_id = request_id or str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


audit_log = AuditLogger()
