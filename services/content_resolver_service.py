from __future__ import annotations

from typing import Any, Dict, List, Mapping, Tuple, Union
import copy
import logging
import warnings

from models.content_document import ContentDocument, IMAGE_BLOCK_TYPE
from models.errors import UnresolvedReferenceError, UnresolvedReferenceWarning

logger = logging.getLogger(__name__)

DocumentLike = Union[ContentDocument, Dict[str, Any]]


class ContentResolverService:
    """
    Rewrites image blocks that still point at a pending id so they carry the
    uploaded URL instead.

    `resolve` never mutates its input and resolving a resolved document
    returns an equal document. Pending ids missing from the result map are
    left in place and reported: logged and emitted as
    UnresolvedReferenceWarning, or raised as UnresolvedReferenceError when
    `strict` is set.
    """

    def __init__(self, strict: bool = False):
        self.strict = strict

    def resolve(self, document: DocumentLike, result_map: Mapping[str, str],
                strict: bool | None = None) -> DocumentLike:
        resolved, unresolved = self.resolve_with_report(document, result_map)
        if unresolved:
            self._report_unresolved(unresolved, self.strict if strict is None else strict)
        return resolved

    def resolve_with_report(self, document: DocumentLike,
                            result_map: Mapping[str, str]) -> Tuple[DocumentLike, List[str]]:
        """Like `resolve` but returns (document', unresolved pending ids) silently."""
        if isinstance(document, ContentDocument):
            raw, unresolved = self._resolve_raw(document.to_dict(), result_map)
            return ContentDocument.from_dict(raw), unresolved
        return self._resolve_raw(document, result_map)

    @staticmethod
    def find_pending_ids(document: DocumentLike) -> List[str]:
        raw = document.to_dict() if isinstance(document, ContentDocument) else (document or {})
        ids = []
        for block in raw.get("blocks") or []:
            pending_id = _pending_id_of(block)
            if pending_id:
                ids.append(pending_id)
        return ids

    # ─── Internal helpers ──────────────────────────────────────────
    @staticmethod
    def _resolve_raw(raw: Dict[str, Any] | None,
                     result_map: Mapping[str, str]) -> Tuple[Dict[str, Any], List[str]]:
        if not raw or "blocks" not in raw:
            return copy.deepcopy(raw), []

        unresolved: List[str] = []
        blocks = []
        for block in raw.get("blocks") or []:
            pending_id = _pending_id_of(block)
            if pending_id is None:
                blocks.append(copy.deepcopy(block))
                continue

            url = result_map.get(pending_id)
            if not url:
                unresolved.append(pending_id)
                blocks.append(copy.deepcopy(block))
                continue

            new_block = copy.deepcopy(block)
            file_data = new_block["data"]["file"]
            file_data["url"] = url
            del file_data["pendingId"]
            blocks.append(new_block)

        resolved = {key: copy.deepcopy(value) for key, value in raw.items() if key != "blocks"}
        resolved["blocks"] = blocks
        return resolved, unresolved

    @staticmethod
    def _report_unresolved(unresolved: List[str], strict: bool) -> None:
        if strict:
            raise UnresolvedReferenceError(unresolved)
        message = ("Document still references media that was not uploaded: "
                   + ", ".join(unresolved))
        logger.warning(message)
        warnings.warn(message, UnresolvedReferenceWarning, stacklevel=3)


def _pending_id_of(block: Any) -> str | None:
    if not isinstance(block, dict) or block.get("type") != IMAGE_BLOCK_TYPE:
        return None
    data = block.get("data")
    file_data = data.get("file") if isinstance(data, dict) else None
    if not isinstance(file_data, dict):
        return None
    return file_data.get("pendingId") or None
