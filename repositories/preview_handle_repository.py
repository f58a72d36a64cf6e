from typing import Dict
import logging
import uuid

logger = logging.getLogger(__name__)

HANDLE_PREFIX = "blob:local/"


class PreviewHandleRepository:
    """
    Process-local blob handles used to preview staged media before upload.
    A handle is only meaningful inside this process and is never uploaded.
    """

    def __init__(self):
        self._blobs: Dict[str, bytes] = {}

    def create(self, data: bytes) -> str:
        handle = f"{HANDLE_PREFIX}{uuid.uuid4()}"
        self._blobs[handle] = data
        return handle

    def resolve(self, handle: str) -> bytes | None:
        return self._blobs.get(handle)

    def revoke(self, handle: str) -> bool:
        """
        Release a handle. Returns False when it was already released;
        revoking twice is not an error.
        """
        released = self._blobs.pop(handle, None) is not None
        if not released:
            logger.debug("Preview handle %s already released", handle)
        return released

    def is_live(self, handle: str) -> bool:
        return handle in self._blobs

    def __len__(self) -> int:
        return len(self._blobs)
