"""
Task store module for persistent DDNS tasks.

Defines the TaskStore protocol the scheduler and command handlers depend on,
an in-memory implementation, and a JSON file store protected by an
HMAC-SHA256 over its contents so that tampering is detected on load.
"""

import asyncio
import copy
import hashlib
import hmac
import json
from abc import abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from .ddns_task import DdnsTask
from .exceptions import PersistenceError, TamperingError, ValidationError


@runtime_checkable
class TaskStore(Protocol):
    """Persistence operations for DDNS tasks, keyed by task id."""

    @abstractmethod
    async def get_by_id(self, task_id: str) -> Optional[DdnsTask]:
        ...

    @abstractmethod
    async def get_all(self) -> list[DdnsTask]:
        """All tasks, newest first."""
        ...

    @abstractmethod
    async def get_enabled(self) -> list[DdnsTask]:
        ...

    @abstractmethod
    async def add(self, task: DdnsTask) -> None:
        ...

    @abstractmethod
    async def update(self, task: DdnsTask) -> None:
        ...

    @abstractmethod
    async def delete(self, task_id: str) -> bool:
        """Remove a task; returns False if it did not exist."""
        ...


def _newest_first(tasks: list[DdnsTask]) -> list[DdnsTask]:
    return sorted(tasks, key=lambda t: t.created_at, reverse=True)


class InMemoryTaskStore:
    """
    Process-local store.

    Tasks are deep-copied on the way in and out, so a caller only sees a
    change after it has been written back with update().
    """

    def __init__(self) -> None:
        self._tasks: dict[str, DdnsTask] = {}
        self._lock = asyncio.Lock()

    async def get_by_id(self, task_id: str) -> Optional[DdnsTask]:
        task = self._tasks.get(task_id)
        return copy.deepcopy(task) if task is not None else None

    async def get_all(self) -> list[DdnsTask]:
        return [copy.deepcopy(t) for t in _newest_first(list(self._tasks.values()))]

    async def get_enabled(self) -> list[DdnsTask]:
        return [t for t in await self.get_all() if t.enabled]

    async def add(self, task: DdnsTask) -> None:
        async with self._lock:
            if task.id in self._tasks:
                raise PersistenceError(
                    code="duplicate_id",
                    message=f"Task {task.id} already exists",
                    details={"task_id": task.id},
                )
            self._tasks[task.id] = copy.deepcopy(task)

    async def update(self, task: DdnsTask) -> None:
        async with self._lock:
            if task.id not in self._tasks:
                raise PersistenceError(
                    code="not_found",
                    message=f"Task {task.id} does not exist",
                    details={"task_id": task.id},
                )
            self._tasks[task.id] = copy.deepcopy(task)

    async def delete(self, task_id: str) -> bool:
        async with self._lock:
            return self._tasks.pop(task_id, None) is not None


class JsonTaskStore:
    """
    Task storage in a single HMAC-protected JSON file.

    Every operation re-reads the file, so edits made by another process
    (e.g. the CLI while the scheduler runs) are picked up. Writes are
    serialized with an asyncio.Lock.
    """

    VERSION = 1

    def __init__(self, file_path: Path, hmac_secret: str) -> None:
        """
        Args:
            file_path: Path to the task file (JSON format)
            hmac_secret: Secret key for HMAC computation
        """
        if not hmac_secret:
            raise ValueError("HMAC secret cannot be empty")
        self._file_path = Path(file_path)
        self._hmac_secret = hmac_secret.encode("utf-8")
        self._lock = asyncio.Lock()

    @property
    def file_path(self) -> Path:
        return self._file_path

    async def get_by_id(self, task_id: str) -> Optional[DdnsTask]:
        return self._load().get(task_id)

    async def get_all(self) -> list[DdnsTask]:
        return _newest_first(list(self._load().values()))

    async def get_enabled(self) -> list[DdnsTask]:
        return [t for t in await self.get_all() if t.enabled]

    async def add(self, task: DdnsTask) -> None:
        async with self._lock:
            tasks = self._load()
            if task.id in tasks:
                raise PersistenceError(
                    code="duplicate_id",
                    message=f"Task {task.id} already exists",
                    details={"task_id": task.id},
                )
            tasks[task.id] = task
            self._save(tasks)

    async def update(self, task: DdnsTask) -> None:
        async with self._lock:
            tasks = self._load()
            if task.id not in tasks:
                raise PersistenceError(
                    code="not_found",
                    message=f"Task {task.id} does not exist",
                    details={"task_id": task.id},
                )
            tasks[task.id] = task
            self._save(tasks)

    async def delete(self, task_id: str) -> bool:
        async with self._lock:
            tasks = self._load()
            if tasks.pop(task_id, None) is None:
                return False
            self._save(tasks)
            return True

    def _load(self) -> dict[str, DdnsTask]:
        """
        Read and verify the task file.

        Returns:
            Tasks keyed by id; empty if the file does not exist yet

        Raises:
            TamperingError: If HMAC validation fails
            PersistenceError: If the file cannot be read or parsed
        """
        if not self._file_path.exists():
            return {}

        try:
            with open(self._file_path, "r", encoding="utf-8") as f:
                raw_data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise PersistenceError(
                code="parse_error",
                message=f"Failed to parse task file: {e}",
                details={"file_path": str(self._file_path)},
            )
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to read task file: {e}",
                details={"file_path": str(self._file_path)},
            )

        if not isinstance(raw_data, dict):
            raise PersistenceError(
                code="parse_error",
                message="Task file does not contain a JSON object",
                details={"file_path": str(self._file_path)},
            )

        stored_hmac = raw_data.get("hmac", "")
        computed_hmac = self.compute_hmac(self._signable(raw_data))
        if not isinstance(stored_hmac, str) or not self.validate_hmac(stored_hmac, computed_hmac):
            raise TamperingError(
                code="hmac_mismatch",
                message="HMAC validation failed - task file may have been tampered with",
                details={"file_path": str(self._file_path)},
            )

        tasks: dict[str, DdnsTask] = {}
        for entry in raw_data.get("tasks", []):
            try:
                task = DdnsTask.from_dict(entry)
            except ValidationError as e:
                raise PersistenceError(
                    code="invalid_task",
                    message=f"Invalid task in task file: {e.message}",
                    details={"file_path": str(self._file_path)},
                ) from e
            tasks[task.id] = task
        return tasks

    def _save(self, tasks: dict[str, DdnsTask]) -> None:
        data = {
            "version": self.VERSION,
            "tasks": [t.to_dict() for t in _newest_first(list(tasks.values()))],
            "last_updated": datetime.now(timezone.utc).isoformat(),
        }
        data["hmac"] = self.compute_hmac(self._signable(data))

        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._file_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to write task file: {e}",
                details={"file_path": str(self._file_path)},
            )

    @staticmethod
    def _signable(data: dict) -> dict:
        return {
            "version": data.get("version"),
            "tasks": data.get("tasks", []),
            "last_updated": data.get("last_updated"),
        }

    def compute_hmac(self, data: dict) -> str:
        """Compute HMAC-SHA256 over the canonical JSON form of ``data``."""
        serialized = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return hmac.new(
            self._hmac_secret,
            serialized.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def validate_hmac(self, stored_hmac: str, computed_hmac: str) -> bool:
        return hmac.compare_digest(stored_hmac.encode("utf-8"), computed_hmac.encode("utf-8"))
