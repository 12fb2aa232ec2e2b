"""Pluggable side-effect providers used by the kiosk API.

The defaults only log what they were asked to do.  Real mail, token and
document-store integrations can be supplied to :func:`kiosk.service.create_app`
without changing any route code.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Protocol

from .models import EmailMessage, MonthlyUpload, UploadReceipt

logger = logging.getLogger("kiosk.providers")


class MailSender(Protocol):
    def send(self, message: EmailMessage) -> str: ...


class TokenValidator(Protocol):
    def validate(self) -> bool: ...


class DocumentUploader(Protocol):
    def upload(self, upload: MonthlyUpload) -> UploadReceipt: ...


def _epoch_millis() -> int:
    return int(time.time() * 1000)


def _count(entries: Any) -> int:
    return len(entries) if isinstance(entries, (list, tuple)) else 0


class LoggingMailSender:
    """Record outgoing mail in the service log instead of delivering it."""

    def send(self, message: EmailMessage) -> str:
        logger.info(
            "Email request: to=%s subject=%r body=%r",
            message.to,
            message.subject,
            message.body,
        )
        return f"email-{_epoch_millis()}"


class AcceptAllTokenValidator:
    """Placeholder validator that treats every request as authorised."""

    def validate(self) -> bool:
        return True


class LoggingDocumentUploader:
    """Acknowledge monthly uploads without forwarding them anywhere."""

    def upload(self, upload: MonthlyUpload) -> UploadReceipt:
        logger.info("SharePoint upload request: month=%s year=%s", upload.month_name, upload.year)
        return UploadReceipt(
            visitors_uploaded=_count(upload.visitors),
            staff_uploaded=_count(upload.staff),
            month=upload.month_name,
            year=upload.year,
        )


__all__ = [
    "AcceptAllTokenValidator",
    "DocumentUploader",
    "LoggingDocumentUploader",
    "LoggingMailSender",
    "MailSender",
    "TokenValidator",
]
