import json
import os

import pytest

from eventhub.core.exceptions import ConfigurationError, SnapshotCorruptError, StorageError
from eventhub.database.snapshot import JsonFileSnapshot
from eventhub.events_service.models import Event
from eventhub.events_service.store import EventStore


def test_missing_file_loads_empty(tmp_path):
    snapshot = JsonFileSnapshot(tmp_path / "nested" / "events.json")

    assert snapshot.load(Event.from_record) == []
    assert (tmp_path / "nested").is_dir()


def test_invalid_policy_is_rejected(tmp_path):
    with pytest.raises(ConfigurationError):
        JsonFileSnapshot(tmp_path / "events.json", on_corrupt="delete")


def test_save_then_load(tmp_path):
    path = tmp_path / "events.json"
    snapshot = JsonFileSnapshot(path)
    event = Event.new({"title": "Launch", "date": "2030-01-01T10:00:00+00:00"}, "org")

    snapshot.save([event.to_record()])

    assert json.loads(path.read_text(encoding="utf-8"))[0]["id"] == event.id
    assert snapshot.load(Event.from_record) == [event]
    # No temp files left behind
    assert os.listdir(tmp_path) == ["events.json"]


def test_corrupt_file_fail_policy_refuses_to_start(tmp_path):
    path = tmp_path / "events.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(SnapshotCorruptError):
        EventStore(JsonFileSnapshot(path, on_corrupt="fail"))
    assert path.read_text(encoding="utf-8") == "{not json"


def test_corrupt_file_quarantine_policy_preserves_file(tmp_path):
    path = tmp_path / "events.json"
    path.write_text("{not json", encoding="utf-8")

    store = EventStore(JsonFileSnapshot(path, on_corrupt="quarantine"))

    assert store.count() == 0
    assert not path.exists()
    quarantined = [p for p in tmp_path.iterdir() if p.name.startswith("events.json.corrupt-")]
    assert len(quarantined) == 1
    assert quarantined[0].read_text(encoding="utf-8") == "{not json"


def test_corrupt_file_ignore_policy_starts_empty(tmp_path):
    path = tmp_path / "events.json"
    path.write_text(json.dumps({"not": "a list"}), encoding="utf-8")

    store = EventStore(JsonFileSnapshot(path, on_corrupt="ignore"))

    assert store.count() == 0
    assert path.exists()


def test_undecodable_record_counts_as_corrupt(tmp_path):
    path = tmp_path / "events.json"
    path.write_text(json.dumps([{"id": "1", "title": "No dates"}]), encoding="utf-8")

    with pytest.raises(SnapshotCorruptError):
        JsonFileSnapshot(path, on_corrupt="fail").load(Event.from_record)


def test_failed_write_keeps_previous_snapshot(mocker, tmp_path):
    path = tmp_path / "events.json"
    snapshot = JsonFileSnapshot(path)
    snapshot.save([{"id": "1"}])
    mocker.patch("eventhub.database.snapshot.os.replace", side_effect=OSError("read-only"))

    with pytest.raises(StorageError):
        snapshot.save([{"id": "2"}])

    assert json.loads(path.read_text(encoding="utf-8")) == [{"id": "1"}]
    assert os.listdir(tmp_path) == ["events.json"]


def test_unencodable_record_is_a_storage_error(tmp_path):
    path = tmp_path / "events.json"
    snapshot = JsonFileSnapshot(path)
    snapshot.save([{"id": "1"}])

    with pytest.raises(StorageError):
        snapshot.save([{"id": "2", "title": "Bad \ud800 title"}])

    assert json.loads(path.read_text(encoding="utf-8")) == [{"id": "1"}]
    assert os.listdir(tmp_path) == ["events.json"]


def test_failed_write_is_not_logged_with_a_traceback(mocker, caplog, tmp_path):
    snapshot = JsonFileSnapshot(tmp_path / "events.json")
    mocker.patch("eventhub.database.snapshot.os.replace", side_effect=OSError("read-only"))

    with pytest.raises(StorageError):
        snapshot.save([{"id": "1"}])

    # The gateway logs the traceback once when it turns this into a 500.
    assert not [r for r in caplog.records if r.name == "eventhub.database.snapshot" and r.exc_info]
