# storage.py
import json
import logging
import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import TypeAdapter, ValidationError

from locks import ReadWriteLock
from models import STATUS_PENDING, Task

logger = logging.getLogger(__name__)

TASKS_FILE = Path("tasks.json")

_task_list = TypeAdapter(List[Task])


def write_json_atomic(path: Path, payload: Any):
    """
    Writes `payload` as indented JSON to `path` with mode 0600.

    The data goes to a temporary file in the same directory first and is then
    moved over the target with os.replace, so readers never see a partial file.
    """
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        os.chmod(tmp_name, 0o600)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskStore:
    """
    Task collection held in memory and mirrored to a JSON file.

    The file is read once on construction and fully rewritten after every
    mutation. Reads share the lock; add/update/delete hold it exclusively for
    the mutation and the file write together.
    """

    def __init__(self, path: Union[str, Path] = TASKS_FILE):
        self.path = Path(path)
        self._lock = ReadWriteLock()
        self._tasks: Dict[int, Task] = {}
        self._next_id = 1
        self._load()
        logger.info("TaskStore ready file=%s tasks=%d next_id=%d", self.path, len(self._tasks), self._next_id)

    # --- Persistence ---

    def _load(self):
        if not self.path.exists():
            return
        try:
            raw = self.path.read_text(encoding="utf-8")
            tasks = _task_list.validate_json(raw)
        except (OSError, UnicodeDecodeError, ValidationError) as e:
            # Soft failure: an unreadable snapshot starts an empty store.
            logger.warning("Ignoring unreadable task file %s: %s", self.path, e)
            return

        for task in tasks:
            self._tasks[task.id] = task
            if task.id >= self._next_id:
                self._next_id = task.id + 1

    def _save(self):
        payload = [task.model_dump(mode="json") for task in self._sorted()]
        try:
            write_json_atomic(self.path, payload)
        except OSError as e:
            # The in-memory change stands; the next successful save re-syncs the file.
            logger.error("Failed to save tasks to %s: %s", self.path, e)

    def _sorted(self) -> List[Task]:
        return [self._tasks[task_id] for task_id in sorted(self._tasks)]

    # --- Reads ---

    def get(self, task_id: int) -> Optional[Task]:
        with self._lock.read_locked():
            task = self._tasks.get(task_id)
            return task.model_copy() if task else None

    def get_all(self) -> List[Task]:
        with self._lock.read_locked():
            return [task.model_copy() for task in self._sorted()]

    def get_pending(self) -> List[Task]:
        with self._lock.read_locked():
            return [task.model_copy() for task in self._sorted() if task.status == STATUS_PENDING]

    def count(self) -> int:
        with self._lock.read_locked():
            return len(self._tasks)

    def __len__(self):
        return self.count()

    # --- Mutations ---

    def add(self, title: str, description: str, due_date: str, priority: str) -> Task:
        with self._lock.write_locked():
            now = _utcnow()
            task = Task(
                id=self._next_id,
                title=title,
                description=description,
                due_date=due_date,
                priority=priority,
                status=STATUS_PENDING,
                created_at=now,
                updated_at=now,
            )
            self._tasks[task.id] = task
            self._next_id += 1
            self._save()
            return task.model_copy()

    def update(
        self,
        task_id: int,
        title: str,
        description: str,
        due_date: str,
        priority: str,
        status: str,
    ) -> Optional[Task]:
        with self._lock.write_locked():
            task = self._tasks.get(task_id)
            if task is None:
                return None

            # updated_at must move forward even when the clock has not ticked.
            now = max(_utcnow(), task.updated_at + timedelta(microseconds=1))
            updated = task.model_copy(update={
                "title": title,
                "description": description,
                "due_date": due_date,
                "priority": priority,
                "status": status,
                "updated_at": now,
            })
            self._tasks[task_id] = updated
            self._save()
            return updated.model_copy()

    def delete(self, task_id: int) -> bool:
        with self._lock.write_locked():
            if task_id not in self._tasks:
                return False
            del self._tasks[task_id]
            self._save()
            return True
