"""Logging setup and redaction of sensitive values from runtime logs."""
from __future__ import annotations

import logging
import re
from typing import Any, Iterable

from quiz_video.config import settings


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_SECRET_TOKEN_PATTERNS = [
    (re.compile(r"sk-[A-Za-z0-9_\-]{16,}"), "sk-[REDACTED]"),
    (re.compile(r"(Bearer\s+)[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE), r"\1[REDACTED]"),
    # Signed URL signatures (GCS V4 and Azure SAS)
    (re.compile(r"((?:X-Goog-Signature|sig)=)[^&\s\"']+", re.IGNORECASE), r"\1[REDACTED]"),
]


def _configured_secrets() -> Iterable[str]:
    return (settings.AZURE_OPENAI_API_KEY, settings.OPENAI_API_KEY)


def _redact_text(value: str) -> str:
    redacted = value

    # Redact known configured secrets first.
    for secret in _configured_secrets():
        if secret:
            redacted = redacted.replace(secret, "[REDACTED]")

    for pattern, replacement in _SECRET_TOKEN_PATTERNS:
        redacted = pattern.sub(replacement, redacted)

    return redacted


def _redact_object(value: Any) -> Any:
    if isinstance(value, str):
        return _redact_text(value)
    if isinstance(value, tuple):
        return tuple(_redact_object(item) for item in value)
    if isinstance(value, list):
        return [_redact_object(item) for item in value]
    if isinstance(value, dict):
        return {key: _redact_object(item) for key, item in value.items()}
    return value


class SecretRedactionFilter(logging.Filter):
    """Redacts sensitive data from log messages and args."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        if isinstance(record.msg, str):
            record.msg = _redact_text(record.msg)
        record.args = _redact_object(record.args)
        return True


def configure_sensitive_data_redaction() -> None:
    """Attach redaction filter to application and uvicorn loggers."""
    redaction_filter = SecretRedactionFilter()
    logger_names = ("", "uvicorn", "uvicorn.error", "uvicorn.access")

    for logger_name in logger_names:
        logger = logging.getLogger(logger_name)
        already_attached = any(
            isinstance(existing_filter, SecretRedactionFilter)
            for existing_filter in logger.filters
        )
        if not already_attached:
            logger.addFilter(redaction_filter)

    # Logger filters do not see records propagated from child loggers.
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, SecretRedactionFilter) for f in handler.filters):
            handler.addFilter(redaction_filter)


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once and enable secret redaction."""
    logging.basicConfig(level=(level or settings.LOG_LEVEL).upper(), format=LOG_FORMAT)
    configure_sensitive_data_redaction()
