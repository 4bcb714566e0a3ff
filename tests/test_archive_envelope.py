"""Tests for the archive envelope: document shape, atomic write and load."""

from __future__ import annotations

import json
import os

import pytest

from keepsake.archive import envelope as envelope_mod
from keepsake.archive.collector import Collection
from keepsake.archive.envelope import (
    SCHEMA_VERSION,
    ArchiveFilters,
    build_envelope,
    load_envelope,
    write_envelope,
)
from keepsake.archive.errors import (
    ArchiveFormatError,
    ArchiveReadError,
    ArchiveRenameError,
    ArchiveSerializationError,
    ArchiveWriteError,
    OutputExistsError,
    SchemaVersionError,
)
from keepsake.db.models import Link, Memory, Task

TS = "2024-01-01 00:00:00"


@pytest.fixture
def collection():
    return Collection(
        memories=[Memory(id=1, category="c", key="k", value="v", created_at=TS, updated_at=TS)],
        tasks=[
            Task(id=10, project="p", subject="root", status="pending", created_at=TS, updated_at=TS),
            Task(
                id=11, project="p", subject="child", status="pending",
                created_at=TS, updated_at=TS, parent_id=10,
            ),
        ],
        task_deps=[(10, 11)],
        links=[
            Link(id=5, source_type="memory", source_id=1, target_type="task", target_id=10,
                 created_at=TS, relation="about"),
        ],
        entity_types=["memories", "tasks"],
    )


@pytest.fixture
def envelope(collection):
    return build_envelope(collection, "/tmp/source.db", ArchiveFilters(older_than_days=30))


def test_document_omits_empty_sections(envelope):
    doc = envelope.to_document()

    assert doc["schema_version"] == SCHEMA_VERSION
    assert doc["source_db"] == "/tmp/source.db"
    assert doc["entity_types"] == ["memories", "tasks"]
    assert doc["filters"] == {"older_than_days": 30}
    assert doc["counts"] == {"memories": 1, "tasks": 2, "task_deps": 1, "links": 1}
    assert set(doc["data"]) == {"memories", "tasks", "task_deps", "links"}
    assert doc["data"]["task_deps"] == [[10, 11]]
    assert doc["data"]["tasks"][1]["parent_id"] == 10


def test_created_at_is_iso8601(envelope):
    from datetime import datetime

    assert datetime.fromisoformat(envelope.created_at).tzinfo is not None


def test_write_then_load(envelope, tmp_path):
    path = tmp_path / "archive.json"

    size = write_envelope(envelope, path)

    assert size == path.stat().st_size
    loaded = load_envelope(path)
    assert loaded.counts == envelope.counts
    assert loaded.data.memories == envelope.data.memories
    assert loaded.data.tasks == envelope.data.tasks
    assert loaded.data.task_deps == [(10, 11)]
    assert loaded.data.conversations == []
    assert loaded.filters.project is None


def test_write_creates_parent_directories(envelope, tmp_path):
    path = tmp_path / "a" / "b" / "archive.json"
    write_envelope(envelope, path)
    assert path.is_file()


def test_write_leaves_no_temp_files(envelope, tmp_path):
    write_envelope(envelope, tmp_path / "archive.json")
    assert os.listdir(tmp_path) == ["archive.json"]


def test_existing_output_requires_force(envelope, tmp_path):
    path = tmp_path / "archive.json"
    path.write_text("precious", encoding="utf-8")

    with pytest.raises(OutputExistsError, match="--force"):
        write_envelope(envelope, path)
    assert path.read_text(encoding="utf-8") == "precious"

    write_envelope(envelope, path, force=True)
    assert json.loads(path.read_text(encoding="utf-8"))["schema_version"] == SCHEMA_VERSION


def test_rename_failure_cleans_up(envelope, tmp_path, monkeypatch):
    def boom(src, dst):
        raise OSError("cross-device link")

    monkeypatch.setattr(envelope_mod.os, "replace", boom)
    path = tmp_path / "archive.json"

    with pytest.raises(ArchiveRenameError):
        write_envelope(envelope, path)
    assert not path.exists()
    assert os.listdir(tmp_path) == []


def test_serialization_failure(envelope, tmp_path, monkeypatch):
    def boom(*args, **kwargs):
        raise TypeError("not serializable")

    monkeypatch.setattr(envelope_mod.json, "dumps", boom)
    path = tmp_path / "archive.json"

    with pytest.raises(ArchiveSerializationError):
        write_envelope(envelope, path)
    assert not path.exists()


def test_write_failure(envelope, tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    path = blocker / "sub" / "archive.json"

    with pytest.raises(ArchiveWriteError) as excinfo:
        write_envelope(envelope, path)
    assert excinfo.value.path == path
    assert blocker.read_text(encoding="utf-8") == "not a directory"
    assert os.listdir(tmp_path) == ["blocker"]


def test_load_missing_file(tmp_path):
    with pytest.raises(ArchiveReadError):
        load_envelope(tmp_path / "nope.json")


def test_load_invalid_json(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ArchiveFormatError):
        load_envelope(path)


def test_load_non_object(tmp_path):
    path = tmp_path / "list.json"
    path.write_text("[]", encoding="utf-8")
    with pytest.raises(ArchiveFormatError, match="not an object"):
        load_envelope(path)


@pytest.mark.parametrize("version", ["2.0", "1", None])
def test_load_rejects_other_schema_versions(tmp_path, version):
    doc = {"created_at": TS, "source_db": "x", "data": {"memories": "garbage"}}
    if version is not None:
        doc["schema_version"] = version
    path = tmp_path / "old.json"
    path.write_text(json.dumps(doc), encoding="utf-8")

    with pytest.raises(SchemaVersionError) as excinfo:
        load_envelope(path)
    assert excinfo.value.found == version
    assert excinfo.value.expected == SCHEMA_VERSION


def test_load_rejects_malformed_rows(tmp_path):
    doc = {
        "schema_version": SCHEMA_VERSION,
        "created_at": TS,
        "source_db": "x",
        "data": {"memories": [{"id": "not-an-int"}]},
    }
    path = tmp_path / "bad_rows.json"
    path.write_text(json.dumps(doc), encoding="utf-8")
    with pytest.raises(ArchiveFormatError):
        load_envelope(path)


def test_load_minimal_document(tmp_path):
    doc = {"schema_version": SCHEMA_VERSION, "created_at": TS, "source_db": "x"}
    path = tmp_path / "min.json"
    path.write_text(json.dumps(doc), encoding="utf-8")

    loaded = load_envelope(path)

    assert loaded.counts.total == 0
    assert loaded.data.tasks == []
