"""
Document Publishing Pipeline
Uploads every staged asset and rewrites the document's pending references
into permanent URLs. Runs when the editor saves.
"""

from __future__ import annotations

import logging

from models.cancellation import CancellationToken
from models.errors import UnresolvedReferenceError
from services.content_resolver_service import ContentResolverService, DocumentLike
from services.pending_media_service import PendingMediaService
from services.upload_service import UploadService

logger = logging.getLogger(__name__)


def publish_document(
    document: DocumentLike,
    registry: PendingMediaService,
    destination: str | None = None,
    *,
    upload_service: UploadService | None = None,
    resolver: ContentResolverService | None = None,
    cancel_token: CancellationToken | None = None,
) -> DocumentLike:
    """
    upload_all → resolve → release the uploaded entries.

    On upload failure, or when a strict resolver rejects dangling references,
    the exception propagates unchanged, the registry keeps all its entries
    (back in CREATED) and the document is not touched.
    """
    upload_service = upload_service or UploadService()
    resolver = resolver or ContentResolverService()

    result_map = upload_service.upload_all(registry, destination, cancel_token)
    try:
        resolved = resolver.resolve(document, result_map)
    except UnresolvedReferenceError:
        registry.restore(registry.entries())
        raise
    registry.mark_resolved(result_map.keys())

    logger.info("Published document: %d reference(s) resolved, %d entr(y/ies) left staged",
                len(result_map), len(registry))
    return resolved
