import json
import os
import threading

import pytest

from storage import TaskStore


def add_sample(store, title="Write docs", priority="medium"):
    return store.add(title, "Some description", "2026-12-01", priority)


def test_missing_file_starts_empty(data_file):
    store = TaskStore(data_file)
    assert store.get_all() == []
    assert not data_file.exists()
    assert add_sample(store).id == 1


def test_add_assigns_defaults(store):
    task = store.add("Test Task", "Description", "2026-12-31", "high")
    assert task.id == 1
    assert task.status == "pending"
    assert task.priority == "high"
    assert task.created_at == task.updated_at
    assert task.created_at.tzinfo is not None


def test_store_accepts_any_title(store):
    # Title validation is the request layer's job.
    task = store.add("", "", "", "")
    assert store.get(task.id).title == ""


def test_get_returns_same_values(store):
    task = add_sample(store)
    assert store.get(task.id) == task
    assert store.get(999) is None


def test_returned_records_are_copies(store):
    task = add_sample(store)
    task.title = "mutated"
    assert store.get(task.id).title == "Write docs"


def test_ids_never_reused_after_delete(store):
    ids = [add_sample(store, f"Task {i}").id for i in range(3)]
    assert store.delete(ids[-1])
    assert store.delete(ids[0])
    new_ids = [add_sample(store, f"Later {i}").id for i in range(2)]
    all_ids = ids + new_ids
    assert all_ids == sorted(all_ids)
    assert len(set(all_ids)) == len(all_ids)
    assert new_ids == [4, 5]


def test_update_overwrites_fields(store):
    task = add_sample(store)
    updated = store.update(task.id, "Updated Task", "New desc", "", "low", "completed")
    assert updated.title == "Updated Task"
    assert updated.status == "completed"
    assert updated.priority == "low"
    assert updated.created_at == task.created_at
    assert updated.updated_at > task.updated_at
    assert store.get(task.id) == updated


def test_update_allows_free_form_status(store):
    task = add_sample(store)
    updated = store.update(task.id, task.title, "", "", "urgent!!", "blocked")
    assert updated.status == "blocked"
    assert updated.priority == "urgent!!"


def test_update_missing_id_changes_nothing(store):
    add_sample(store)
    before = store.get_all()
    assert store.update(42, "x", "x", "x", "x", "x") is None
    assert store.get_all() == before


def test_delete_twice(store):
    task = add_sample(store)
    assert store.delete(task.id) is True
    assert store.delete(task.id) is False
    assert store.get(task.id) is None


def test_get_pending_tracks_status(store):
    first = add_sample(store, "first")
    second = add_sample(store, "second")
    assert {t.id for t in store.get_pending()} == {first.id, second.id}

    store.update(first.id, "first", "", "", "medium", "completed")
    pending = store.get_pending()
    assert [t.id for t in pending] == [second.id]
    assert pending == [t for t in store.get_all() if t.status == "pending"]


def test_reload_round_trip(data_file):
    store = TaskStore(data_file)
    add_sample(store, "one")
    two = add_sample(store, "two")
    store.update(two.id, "two", "changed", "", "high", "completed")
    add_sample(store, "three")

    reloaded = TaskStore(data_file)
    assert reloaded.get_all() == store.get_all()
    assert add_sample(reloaded, "four").id == 4


def test_snapshot_is_json_array(store, data_file):
    task = add_sample(store)
    saved = json.loads(data_file.read_text(encoding="utf-8"))
    assert isinstance(saved, list)
    assert saved[0]["id"] == task.id
    assert saved[0]["due_date"] == "2026-12-01"
    assert set(saved[0]) == {
        "id", "title", "description", "due_date", "priority", "status", "created_at", "updated_at",
    }


def test_delete_last_task_persists_empty_list(store, data_file):
    task = add_sample(store)
    store.delete(task.id)
    assert json.loads(data_file.read_text(encoding="utf-8")) == []


@pytest.mark.skipif(os.name == "nt", reason="POSIX file modes")
def test_snapshot_is_private(store, data_file):
    add_sample(store)
    assert data_file.stat().st_mode & 0o777 == 0o600


@pytest.mark.parametrize("content", ["{not json", '{"id": 1}', "", '[{"id": "abc"}]'])
def test_malformed_file_starts_empty(data_file, content):
    data_file.write_text(content, encoding="utf-8")
    store = TaskStore(data_file)
    assert store.get_all() == []
    assert add_sample(store).id == 1


def test_next_id_follows_highest_loaded_id(data_file):
    data_file.write_text(json.dumps([
        {"id": 7, "title": "a", "description": "", "due_date": "", "priority": "low",
         "status": "pending", "created_at": "2025-01-01T00:00:00Z", "updated_at": "2025-01-01T00:00:00Z"},
        {"id": 3, "title": "b", "description": "", "due_date": "", "priority": "low",
         "status": "done", "created_at": "2025-01-01T00:00:00", "updated_at": "2025-01-02T00:00:00"},
    ]), encoding="utf-8")
    store = TaskStore(data_file)
    assert len(store) == 2
    assert [t.id for t in store.get_pending()] == [7]
    assert add_sample(store).id == 8
    # Naive timestamps are read as UTC so later updates can compare them.
    assert store.update(3, "b", "", "", "low", "pending").updated_at.tzinfo is not None


def test_failed_save_keeps_in_memory_change(tmp_path, caplog):
    # The parent directory does not exist, so every write fails.
    store = TaskStore(tmp_path / "missing" / "tasks.json")
    task = add_sample(store)
    assert store.get(task.id) == task
    assert "Failed to save tasks" in caplog.text


def test_concurrent_adds_get_distinct_ids(store, data_file):
    writers = 32
    barrier = threading.Barrier(writers)
    results = []
    results_lock = threading.Lock()

    def worker(n):
        barrier.wait()
        task = store.add(f"Task {n}", "", "", "medium")
        with results_lock:
            results.append(task.id)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(writers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(results) == list(range(1, writers + 1))
    assert len(store.get_all()) == writers
    assert len(json.loads(data_file.read_text(encoding="utf-8"))) == writers


def test_readers_run_alongside_writers(store):
    add_sample(store)
    errors = []

    def reader():
        try:
            for _ in range(50):
                tasks = store.get_all()
                assert len({t.id for t in tasks}) == len(tasks)
        except AssertionError as e:
            errors.append(e)

    def writer(n):
        for i in range(10):
            add_sample(store, f"w{n}-{i}")

    threads = [threading.Thread(target=reader) for _ in range(4)]
    threads += [threading.Thread(target=writer, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert not errors
    assert len(store) == 41
