"""
Unit tests for pipeline.publish_document module.
"""
import pytest

from models.errors import UnresolvedReferenceError, UploadFailure
from models.pending_media import EntryState
from pipeline.publish_document import publish_document
from services.content_resolver_service import ContentResolverService
from services.upload_service import UploadService

from conftest import FakeUploadRepository


def document_for(*pending_ids):
    blocks = [{"type": "paragraph", "data": {"text": "Hello"}}]
    blocks += [{"type": "image", "data": {"file": {"pendingId": pid}, "caption": ""}}
               for pid in pending_ids]
    return {"time": 1, "version": "2.28.2", "blocks": blocks}


def test_publish_resolves_and_empties_registry(registry):
    uploader = FakeUploadRepository()
    ids = [registry.add(b"a", file_name="a.jpg")[0], registry.add(b"b", file_name="b.jpg")[0]]
    previews = [registry.get(pid).preview_handle for pid in ids]

    result = publish_document(document_for(*ids), registry, "posts",
                              upload_service=UploadService(upload_repository=uploader))

    urls = [b["data"]["file"]["url"] for b in result["blocks"][1:]]
    assert urls == ["https://cdn.example.com/posts/1-a.jpg", "https://cdn.example.com/posts/2-b.jpg"]
    assert len(registry) == 0
    assert not any(registry.previews.is_live(p) for p in previews)


def test_publish_failure_leaves_everything_in_place(registry):
    uploader = FakeUploadRepository(fail_on=(2,))
    ids = [registry.add(bytes([i]), file_name=f"{i}.jpg")[0] for i in range(3)]
    document = document_for(*ids)

    with pytest.raises(UploadFailure):
        publish_document(document, registry,
                         upload_service=UploadService(upload_repository=uploader))

    assert len(registry) == 3
    assert document == document_for(*ids)

    # A retry uploads every entry again.
    retry = FakeUploadRepository()
    publish_document(document, registry, upload_service=UploadService(upload_repository=retry))
    assert len(retry.calls) == 3
    assert len(registry) == 0


def test_strict_resolution_failure_restores_registry(registry):
    pending_id, _ = registry.add(b"a", file_name="a.jpg")
    document = document_for(pending_id, "removed-before-save")

    with pytest.raises(UnresolvedReferenceError) as exc_info:
        publish_document(document, registry,
                         upload_service=UploadService(upload_repository=FakeUploadRepository()),
                         resolver=ContentResolverService(strict=True))

    assert exc_info.value.pending_ids == ["removed-before-save"]
    assert pending_id in registry
    assert registry.get(pending_id).state == EntryState.CREATED
