from typing import Dict, Iterator, List

from models.pending_media import PendingMediaEntry, EntryState


class PendingMediaRepository:
    """
    Insertion-ordered store of staged entries, keyed by pending id.
    Pure data operations; handle lifecycle lives in PendingMediaService.
    """

    def __init__(self):
        self._entries: Dict[str, PendingMediaEntry] = {}

    def insert(self, entry: PendingMediaEntry) -> None:
        if entry.id in self._entries:
            raise KeyError(f"Pending id already registered: {entry.id}")
        self._entries[entry.id] = entry

    def get(self, pending_id: str) -> PendingMediaEntry | None:
        return self._entries.get(pending_id)

    def pop(self, pending_id: str) -> PendingMediaEntry | None:
        return self._entries.pop(pending_id, None)

    def pop_all(self) -> List[PendingMediaEntry]:
        entries = list(self._entries.values())
        self._entries.clear()
        return entries

    def list(self) -> List[PendingMediaEntry]:
        return list(self._entries.values())

    def set_state(self, pending_id: str, state: EntryState) -> None:
        entry = self._entries.get(pending_id)
        if entry is not None:
            entry.state = state

    def __contains__(self, pending_id: str) -> bool:
        return pending_id in self._entries

    def __iter__(self) -> Iterator[PendingMediaEntry]:
        return iter(list(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)
