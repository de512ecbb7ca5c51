"""Value records handed to callers of the catalog and store."""

from dataclasses import dataclass, field
from datetime import datetime

from .structure import PartLocator


DEFAULT_MEDIA_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class AttachmentRef:
    """One located attachment inside a message."""
    name: str
    media_type: str
    size: int
    transfer_encoding: str | None
    part_locator: PartLocator

    def to_dict(self) -> dict:
        return {"name": self.name, "mediaType": self.media_type, "size": self.size}


@dataclass
class StoredObject:
    """One stored file: a tagged message with at least one attachment."""
    id: int
    name: str
    date: datetime | None
    attachments: list[AttachmentRef] = field(default_factory=list)

    @property
    def size(self) -> int:
        return sum(a.size for a in self.attachments)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "size": self.size,
            "date": self.date.isoformat() if self.date else None,
            "attachments": [a.to_dict() for a in self.attachments],
        }


@dataclass(frozen=True)
class DownloadedObject:
    data: bytes
    filename: str
    media_type: str = DEFAULT_MEDIA_TYPE

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class UploadReceipt:
    filename: str
    size: int
    id: int | None = None

    def to_dict(self) -> dict:
        return {"filename": self.filename, "size": self.size, "id": self.id}


@dataclass(frozen=True)
class MailSummary:
    """One inbox message as shown by ``maildisk inbox``."""
    id: int
    sender: str
    to: str
    subject: str
    date: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "from": self.sender,
            "to": self.to,
            "subject": self.subject,
            "date": self.date.isoformat() if self.date else None,
        }
