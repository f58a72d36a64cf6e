from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"

    @classmethod
    def from_mime_type(cls, mime_type: str) -> MediaKind:
        return cls.VIDEO if mime_type.startswith("video/") else cls.IMAGE


class EntryState(str, Enum):
    CREATED = "created"
    DRAINING = "draining"
    RESOLVED = "resolved"


@dataclass
class PendingMediaEntry:
    """
    Locally staged asset waiting for upload.
    Owned by the pending media registry; other components only read it.
    """
    id: str
    preview_handle: str
    data: bytes
    media_kind: MediaKind = MediaKind.IMAGE
    file_name: str | None = None
    mime_type: str = "image/jpeg"
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    state: EntryState = EntryState.CREATED

    @property
    def byte_size(self) -> int:
        return len(self.data)

    @property
    def label(self) -> str:
        """Human readable name used in error messages."""
        return self.file_name or self.id
