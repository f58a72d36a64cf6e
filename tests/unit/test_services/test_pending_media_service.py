"""
Unit tests for services.pending_media_service module.
"""
from models.pending_media import EntryState, MediaKind
from repositories.preview_handle_repository import HANDLE_PREFIX


class TestAdd:

    def test_returns_id_and_preview(self, registry):
        pending_id, preview = registry.add(b"jpeg-bytes", file_name="a.jpg")

        assert pending_id
        assert preview.startswith(HANDLE_PREFIX)
        assert pending_id in registry
        assert registry.preview_data(pending_id) == b"jpeg-bytes"

    def test_ids_are_unique(self, registry):
        ids = {registry.add(b"x")[0] for _ in range(50)}

        assert len(ids) == 50
        assert len(registry) == 50

    def test_default_mime_follows_media_kind(self, registry):
        image_id, _ = registry.add(b"img")
        video_id, _ = registry.add(b"vid", MediaKind.VIDEO)

        assert registry.get(image_id).mime_type == "image/jpeg"
        assert registry.get(video_id).mime_type == "video/mp4"

    def test_entry_starts_created(self, registry):
        pending_id, _ = registry.add(b"x", file_name="a.jpg")
        entry = registry.get(pending_id)

        assert entry.state == EntryState.CREATED
        assert entry.byte_size == 1
        assert entry.label == "a.jpg"


class TestRemove:

    def test_remove_releases_preview(self, registry):
        pending_id, preview = registry.add(b"x")

        assert registry.remove(pending_id) is True
        assert pending_id not in registry
        assert not registry.previews.is_live(preview)
        assert registry.preview_data(pending_id) is None

    def test_remove_twice_is_harmless(self, registry):
        pending_id, _ = registry.add(b"x")
        registry.remove(pending_id)

        assert registry.remove(pending_id) is False
        assert registry.remove("never-registered") is False

    def test_clear_releases_every_handle(self, registry):
        for _ in range(3):
            registry.add(b"x")

        registry.clear()

        assert len(registry) == 0
        assert len(registry.previews) == 0


class TestDrainCycle:

    def test_drain_keeps_registration_order(self, registry):
        ids = [registry.add(bytes([i]))[0] for i in range(5)]

        drained = registry.drain()

        assert [e.id for e in drained] == ids
        assert all(e.state == EntryState.DRAINING for e in drained)
        assert len(registry) == 5

    def test_restore_after_failed_batch(self, registry):
        registry.add(b"a")
        registry.add(b"b")

        registry.restore(registry.drain())

        assert all(e.state == EntryState.CREATED for e in registry.entries())
        assert len(registry) == 2

    def test_mark_resolved_removes_entries(self, registry):
        first, first_preview = registry.add(b"a")
        second, _ = registry.add(b"b")
        registry.drain()

        registry.mark_resolved([first, "unknown"])

        assert first not in registry
        assert second in registry
        assert not registry.previews.is_live(first_preview)
