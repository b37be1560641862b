import sqlite3
from unittest.mock import patch

from skillswap import events
from skillswap.core.annotations import SCHEMA_TAG, AnnotationStore
from skillswap.lib import store
from skillswap.models import AnnotationEntry


def test_memory_only_store():
    annotations = AnnotationStore()
    annotations.put("0xabc", AnnotationEntry(teach_text="Guitar"))

    assert annotations.degraded
    assert annotations.get("0xabc") == AnnotationEntry(teach_text="Guitar")
    assert annotations.get("0xdef") is None


def test_put_merges_partial_entries(tmp_path):
    annotations = AnnotationStore(tmp_path / "annotations.db")

    annotations.put("0xabc", AnnotationEntry(teach_text="Guitar"))
    annotations.put("0xabc", AnnotationEntry(learn_text="Painting"))

    assert annotations.get("0xabc") == AnnotationEntry(teach_text="Guitar", learn_text="Painting")


def test_put_overwrites_set_fields_only(tmp_path):
    annotations = AnnotationStore(tmp_path / "annotations.db")

    annotations.put("0xabc", AnnotationEntry(teach_text="Guitar", learn_text="Painting"))
    annotations.put("0xabc", AnnotationEntry(teach_text="Drums"))

    assert annotations.get("0xabc") == AnnotationEntry(teach_text="Drums", learn_text="Painting")


def test_empty_entry_is_ignored(tmp_path):
    annotations = AnnotationStore(tmp_path / "annotations.db")
    annotations.put("0xabc", AnnotationEntry())

    assert annotations.get("0xabc") is None


def test_identity_is_normalized(tmp_path):
    annotations = AnnotationStore(tmp_path / "annotations.db")
    annotations.put("0xABC", AnnotationEntry(teach_text="Guitar"))

    assert annotations.get(" 0xabc ") == AnnotationEntry(teach_text="Guitar")


def test_entries_survive_restart(tmp_path):
    db = tmp_path / "nested" / "annotations.db"
    first = AnnotationStore(db)
    first.put("0xabc", AnnotationEntry(teach_text="Guitar", learn_text="Painting"))
    first.close()

    second = AnnotationStore(db)
    assert second.get("0xabc") == AnnotationEntry(teach_text="Guitar", learn_text="Painting")
    assert not second.degraded
    second.close()


def test_new_database_is_tagged(tmp_path):
    db = tmp_path / "annotations.db"
    annotations = AnnotationStore(db)
    annotations.put("0xabc", AnnotationEntry(teach_text="Guitar"))
    annotations.close()

    conn = store.connect(db)
    assert store.read_schema_tag(conn) == SCHEMA_TAG
    conn.close()


def test_foreign_schema_is_treated_as_empty(tmp_path):
    db = tmp_path / "annotations.db"
    conn = store.connect(db)
    store.write_schema_tag(conn, "someone_elses_v9")
    conn.close()

    degraded = []
    events.on(events.ANNOTATION_DEGRADED)(degraded.append)

    annotations = AnnotationStore(db)
    assert annotations.get("0xabc") is None
    assert annotations.degraded

    annotations.put("0xabc", AnnotationEntry(teach_text="Guitar"))
    assert annotations.get("0xabc") == AnnotationEntry(teach_text="Guitar")
    assert len(degraded) == 1

    conn = store.connect(db)
    assert store.read_schema_tag(conn) == "someone_elses_v9"
    conn.close()


def test_sqlite_failure_degrades_to_memory(tmp_path):
    with patch(
        "skillswap.core.annotations.store.connect",
        side_effect=sqlite3.OperationalError("disk I/O error"),
    ):
        annotations = AnnotationStore(tmp_path / "annotations.db")
        annotations.put("0xabc", AnnotationEntry(teach_text="Guitar"))

        assert annotations.degraded
        assert annotations.get("0xabc") == AnnotationEntry(teach_text="Guitar")
