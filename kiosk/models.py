"""Domain models for the visitor kiosk service."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class DirectoryUser:
    """A personnel record exposed through directory search."""

    id: str
    display_name: str
    mail: str
    job_title: str
    department: str

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "DirectoryUser":
        """Create a :class:`DirectoryUser` from a raw directory entry."""
        required_fields = {"id", "displayName", "mail", "jobTitle", "department"}
        missing = required_fields - data.keys()
        if missing:
            raise ValueError(f"Missing required directory fields: {', '.join(sorted(missing))}")

        return DirectoryUser(
            id=str(data["id"]),
            display_name=str(data["displayName"]),
            mail=str(data["mail"]),
            job_title=str(data["jobTitle"]),
            department=str(data["department"]),
        )

    def searchable_fields(self) -> tuple[str, str, str, str]:
        return (self.display_name, self.mail, self.department, self.job_title)

    def to_dict(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "displayName": self.display_name,
            "mail": self.mail,
            "jobTitle": self.job_title,
            "department": self.department,
        }


@dataclass(frozen=True)
class EmailMessage:
    """Mail as submitted by the kiosk; fields are only checked for presence."""

    to: Any
    subject: Any
    body: Any


@dataclass(frozen=True)
class MonthlyUpload:
    """Monthly visitor and staff sign-in data submitted by the kiosk."""

    visitors: Any
    staff: Any
    month_name: Any = None
    year: Any = None


@dataclass(frozen=True)
class UploadReceipt:
    visitors_uploaded: int
    staff_uploaded: int
    month: Any
    year: Any


__all__ = ["DirectoryUser", "EmailMessage", "MonthlyUpload", "UploadReceipt"]
