"""Tests for sync state persistence."""

import json
from unittest.mock import patch

import pytest

from drivemirror.exceptions import StatePersistenceError
from drivemirror.sync.state import (
    DirectoryState,
    FileRecord,
    StateLoadStatus,
    SyncState,
    SyncStateManager,
)

SAMPLE_DOCUMENT = {
    "dirs": {
        "Photos": {
            "files": {
                "id1": {
                    "name": "a.jpg",
                    "modifiedTime": "2024-05-01T10:00:00.000Z",
                    "mimeType": "image/jpeg",
                },
                "id0": {"name": "z.jpg", "modifiedTime": "2024-04-01T10:00:00.000Z"},
            }
        },
        "public-root": {"files": {}},
    }
}


class TestFileRecord:
    """Tests for FileRecord serialization."""

    def test_to_dict_omits_missing_mime_type(self):
        record = FileRecord(name="a.jpg", modified_time="t1")
        assert record.to_dict() == {"name": "a.jpg", "modifiedTime": "t1"}

    def test_to_dict_with_mime_type(self):
        record = FileRecord(name="a.jpg", modified_time="t1", mime_type="image/jpeg")
        assert record.to_dict()["mimeType"] == "image/jpeg"

    def test_from_dict_requires_name(self):
        with pytest.raises(ValueError):
            FileRecord.from_dict({"modifiedTime": "t1"})

    def test_from_dict_without_modified_time(self):
        """Test that a missing watermark loads as empty (forces re-download)."""
        record = FileRecord.from_dict({"name": "b.png"})
        assert record.modified_time == ""
        assert record.mime_type is None


class TestDirectoryState:
    """Tests for DirectoryState."""

    def test_upsert_keeps_position(self):
        """Test that updating a record keeps its insertion position."""
        directory = DirectoryState()
        directory.upsert("a", FileRecord("a.jpg", "t1"))
        directory.upsert("b", FileRecord("b.jpg", "t1"))
        directory.upsert("a", FileRecord("a.jpg", "t2"))

        assert list(directory.files) == ["a", "b"]
        assert directory.get("a").modified_time == "t2"

    def test_remove(self):
        directory = DirectoryState()
        directory.upsert("a", FileRecord("a.jpg", "t1"))

        assert directory.remove("a").name == "a.jpg"
        assert directory.remove("a") is None
        assert len(directory) == 0


class TestSyncState:
    """Tests for SyncState."""

    def test_round_trip_preserves_order(self):
        """Test that serialization keeps directory and file order."""
        state = SyncState.from_dict(SAMPLE_DOCUMENT)

        assert list(state.dirs) == ["Photos", "public-root"]
        assert list(state.dirs["Photos"].files) == ["id1", "id0"]
        assert state.to_dict() == SAMPLE_DOCUMENT

    def test_directory_creates_missing(self):
        state = SyncState()
        directory = state.directory("Photos")

        assert state.dirs["Photos"] is directory
        assert state.directory("Photos") is directory

    def test_file_count(self):
        assert SyncState.from_dict(SAMPLE_DOCUMENT).file_count == 2

    @pytest.mark.parametrize(
        "document",
        [[], {"dirs": []}, {"dirs": {"x": {"files": []}}}, {"dirs": {"x": "y"}}],
    )
    def test_from_dict_rejects_bad_shapes(self, document):
        with pytest.raises(ValueError):
            SyncState.from_dict(document)


class TestSyncStateManager:
    """Tests for loading and saving the state file."""

    def test_load_absent(self, tmp_path):
        """Test that a missing file yields empty state."""
        result = SyncStateManager(tmp_path / "state.json").load()

        assert result.status == StateLoadStatus.ABSENT
        assert result.state.dirs == {}

    def test_load_corrupt_json(self, tmp_path):
        """Test that invalid JSON yields empty state, not an error."""
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding="utf-8")

        result = SyncStateManager(path).load()

        assert result.status == StateLoadStatus.CORRUPT
        assert result.state.dirs == {}
        assert result.error

    def test_load_wrong_shape(self, tmp_path):
        """Test that valid JSON with the wrong structure is treated as corrupt."""
        path = tmp_path / "state.json"
        path.write_text('{"dirs": {"Photos": {"files": {"x": 5}}}}', encoding="utf-8")

        result = SyncStateManager(path).load()

        assert result.status == StateLoadStatus.CORRUPT
        assert result.state.dirs == {}

    def test_load_empty_object(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{}", encoding="utf-8")

        result = SyncStateManager(path).load()

        assert result.status == StateLoadStatus.LOADED
        assert result.state.dirs == {}

    def test_save_and_load(self, tmp_path):
        """Test that saved state loads back identically."""
        path = tmp_path / "state.json"
        manager = SyncStateManager(path)
        manager.save(SyncState.from_dict(SAMPLE_DOCUMENT))

        result = manager.load()

        assert result.status == StateLoadStatus.LOADED
        assert result.state.to_dict() == SAMPLE_DOCUMENT
        assert json.loads(path.read_text(encoding="utf-8")) == SAMPLE_DOCUMENT

    def test_save_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "state.json"
        SyncStateManager(path).save(SyncState())
        assert json.loads(path.read_text(encoding="utf-8")) == {"dirs": {}}

    def test_save_failure_raises_and_keeps_old_file(self, tmp_path):
        """Test that a failed write is fatal and leaves the old file alone."""
        path = tmp_path / "state.json"
        path.write_text('{"dirs": {}}', encoding="utf-8")
        manager = SyncStateManager(path)

        with patch(
            "drivemirror.utils.os.replace", side_effect=OSError("disk full")
        ):
            with pytest.raises(StatePersistenceError, match="disk full"):
                manager.save(SyncState.from_dict(SAMPLE_DOCUMENT))

        assert path.read_text(encoding="utf-8") == '{"dirs": {}}'
        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]

    def test_clear(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{}", encoding="utf-8")
        manager = SyncStateManager(path)

        assert manager.clear() is True
        assert not path.exists()
        assert manager.clear() is False
