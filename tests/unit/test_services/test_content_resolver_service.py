"""
Unit tests for services.content_resolver_service module.
"""
import copy

import pytest

from models.content_document import ContentDocument, image_block
from models.errors import UnresolvedReferenceError, UnresolvedReferenceWarning
from services.content_resolver_service import ContentResolverService


def make_document():
    return {
        "time": 1700000000000,
        "version": "2.28.2",
        "blocks": [
            {"type": "paragraph", "data": {"text": "Intro"}},
            {"type": "image", "data": {"file": {"pendingId": "p1"}, "caption": "first"}},
            {"type": "image", "data": {"file": {"url": "https://cdn.example.com/old.jpg"}}},
            {"type": "image", "data": {"file": {"pendingId": "p2"}, "caption": "second"}},
        ],
    }


@pytest.fixture
def resolver():
    return ContentResolverService()


class TestResolve:

    def test_replaces_pending_ids_with_urls(self, resolver):
        result = resolver.resolve(make_document(), {"p1": "https://cdn/1.jpg", "p2": "https://cdn/2.jpg"})

        files = [b["data"].get("file") for b in result["blocks"]]
        assert files[1] == {"url": "https://cdn/1.jpg"}
        assert files[3] == {"url": "https://cdn/2.jpg"}
        assert result["blocks"][1]["data"]["caption"] == "first"

    def test_non_image_and_resolved_blocks_untouched(self, resolver):
        doc = make_document()

        result = resolver.resolve(doc, {"p1": "u1", "p2": "u2"})

        assert result["blocks"][0] == doc["blocks"][0]
        assert result["blocks"][2] == doc["blocks"][2]
        assert result["time"] == doc["time"]
        assert result["version"] == doc["version"]

    def test_input_is_not_mutated(self, resolver):
        doc = make_document()
        snapshot = copy.deepcopy(doc)

        result = resolver.resolve(doc, {"p1": "u1", "p2": "u2"})
        result["blocks"][0]["data"]["text"] = "changed"

        assert doc == snapshot

    def test_resolving_twice_is_stable(self, resolver):
        result_map = {"p1": "u1", "p2": "u2"}
        once = resolver.resolve(make_document(), result_map)

        assert resolver.resolve(once, result_map) == once

    def test_document_without_pending_refs(self, resolver):
        doc = {"blocks": [{"type": "paragraph", "data": {"text": "hi"}}]}

        assert resolver.resolve(doc, {}) == doc

    def test_content_document_input(self, resolver):
        doc = ContentDocument(blocks=[image_block(pending_id="p1", caption="c")], time=1)

        result = resolver.resolve(doc, {"p1": "https://cdn/1.jpg"})

        assert isinstance(result, ContentDocument)
        assert result.blocks[0].final_url == "https://cdn/1.jpg"
        assert result.blocks[0].pending_id is None
        assert doc.blocks[0].pending_id == "p1"


class TestUnresolved:

    def test_missing_id_warns_and_stays(self, resolver):
        with pytest.warns(UnresolvedReferenceWarning, match="p2"):
            result = resolver.resolve(make_document(), {"p1": "u1"})

        assert result["blocks"][3]["data"]["file"] == {"pendingId": "p2"}
        assert result["blocks"][1]["data"]["file"] == {"url": "u1"}

    def test_report_lists_missing_ids(self, resolver):
        _, unresolved = resolver.resolve_with_report(make_document(), {})

        assert unresolved == ["p1", "p2"]

    def test_strict_mode_raises(self):
        with pytest.raises(UnresolvedReferenceError) as exc_info:
            ContentResolverService(strict=True).resolve(make_document(), {"p1": "u1"})

        assert exc_info.value.pending_ids == ["p2"]

    def test_strict_per_call_override(self, resolver):
        with pytest.raises(UnresolvedReferenceError):
            resolver.resolve(make_document(), {}, strict=True)


def test_find_pending_ids():
    ids = ContentResolverService.find_pending_ids(make_document())

    assert ids == ["p1", "p2"]
