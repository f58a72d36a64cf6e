from __future__ import annotations

from typing import Iterable, List, Tuple
import logging
import uuid

from models.pending_media import EntryState, MediaKind, PendingMediaEntry
from repositories.pending_media_repository import PendingMediaRepository
from repositories.preview_handle_repository import PreviewHandleRepository

logger = logging.getLogger(__name__)


class PendingMediaService:
    """
    Registry of processed assets staged locally until the document is saved.

    One editing session drives all calls on an instance. Every path that
    drops an entry (remove, clear, post-resolution) releases its preview
    handle; releasing an already released handle is a no-op.
    """

    def __init__(self, repository: PendingMediaRepository = None,
                 previews: PreviewHandleRepository = None):
        self.repository = repository or PendingMediaRepository()
        self.previews = previews or PreviewHandleRepository()

    def add(self, data: bytes, media_kind: MediaKind = MediaKind.IMAGE,
            file_name: str | None = None, mime_type: str | None = None) -> Tuple[str, str]:
        """
        Stage `data` and return (pending_id, preview_handle).
        """
        pending_id = uuid.uuid4().hex
        preview = self.previews.create(data)
        entry = PendingMediaEntry(
            id=pending_id,
            preview_handle=preview,
            data=data,
            media_kind=media_kind,
            file_name=file_name,
            mime_type=mime_type or ("video/mp4" if media_kind == MediaKind.VIDEO else "image/jpeg"),
        )
        self.repository.insert(entry)
        logger.info("Staged %s %s (%d bytes) as %s",
                    media_kind.value, file_name or "<unnamed>", len(data), pending_id)
        return pending_id, preview

    def get(self, pending_id: str) -> PendingMediaEntry | None:
        return self.repository.get(pending_id)

    def entries(self) -> List[PendingMediaEntry]:
        return self.repository.list()

    def preview_data(self, pending_id: str) -> bytes | None:
        entry = self.repository.get(pending_id)
        if entry is None:
            return None
        return self.previews.resolve(entry.preview_handle)

    def remove(self, pending_id: str) -> bool:
        """Drop one entry and release its preview. Unknown ids are ignored."""
        entry = self.repository.pop(pending_id)
        if entry is None:
            logger.debug("remove(%s): not registered", pending_id)
            return False
        self.previews.revoke(entry.preview_handle)
        return True

    def drain(self) -> List[PendingMediaEntry]:
        """
        Hand every entry, in registration order, to the upload coordinator.
        Entries stay registered (state DRAINING) until `mark_resolved`.
        """
        entries = self.repository.list()
        for entry in entries:
            entry.state = EntryState.DRAINING
        return entries

    def restore(self, entries: Iterable[PendingMediaEntry]) -> None:
        """Put drained entries back to CREATED after a failed batch."""
        for entry in entries:
            self.repository.set_state(entry.id, EntryState.CREATED)

    def mark_resolved(self, pending_ids: Iterable[str]) -> None:
        """Remove entries whose URL made it into the document."""
        for pending_id in pending_ids:
            entry = self.repository.get(pending_id)
            if entry is not None:
                entry.state = EntryState.RESOLVED
                self.remove(pending_id)

    def clear(self) -> None:
        for entry in self.repository.pop_all():
            self.previews.revoke(entry.preview_handle)

    def __len__(self) -> int:
        return len(self.repository)

    def __contains__(self, pending_id: str) -> bool:
        return pending_id in self.repository
