"""Durable pipeline state.

The pipeline record is the only shared mutable resource. Every mutation is a
read-modify-write against the latest persisted value, serialized by an
in-process lock and a lock file next to the state file, so a command (abort,
reset) and a scheduler tick arriving together cannot overwrite each other.
"""

import json
import logging
import os
import tempfile
import threading
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Union

from filelock import FileLock

logger = logging.getLogger("notebooklm_pipeline.pipeline")

# Pipeline status values
STATUS_IDLE = "idle"
STATUS_RUNNING = "running"
STATUS_COMPLETED = "completed"
STATUS_ERROR = "error"

# Step values (meaningful only while running, plus the terminal markers)
STEP_AUTH = "auth"
STEP_CREATE_NOTEBOOK = "create_notebook"
STEP_ADD_SOURCE = "add_source"
STEP_WAIT_SOURCE = "wait_source"
STEP_GENERATE_ARTIFACTS = "generate_artifacts"
STEP_WAIT_ARTIFACTS = "wait_artifacts"
STEP_DONE = "done"
STEP_ERROR = "error"

# Task status values
TASK_IN_PROGRESS = "in_progress"
TASK_COMPLETED = "completed"
TASK_FAILED = "failed"

LOCK_TIMEOUT = 10.0


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat()


def parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class ArtifactTask:
    """One requested artifact and its generation status."""

    artifact_type: str
    task_id: str | None = None
    status: str = TASK_IN_PROGRESS
    error: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ArtifactTask":
        return cls(
            artifact_type=data.get("artifact_type", "unknown"),
            task_id=data.get("task_id"),
            status=data.get("status", TASK_IN_PROGRESS),
            error=data.get("error"),
        )


@dataclass
class PipelineState:
    """The persisted progress record of one pipeline run."""

    status: str = STATUS_IDLE
    step: str | None = None
    step_detail: str = ""
    source_url: str | None = None
    source_type: str = "pdf"
    page_url: str | None = None
    file_name: str | None = None
    notebook_id: str | None = None
    notebook_url: str | None = None
    notebook_title: str | None = None
    source_id: str | None = None
    tasks: list[ArtifactTask] = field(default_factory=list)
    error: str | None = None
    started_at: str | None = None
    completed_at: str | None = None
    step_started_at: str | None = None

    @property
    def is_running(self) -> bool:
        return self.status == STATUS_RUNNING

    def to_dict(self) -> dict:
        data = asdict(self)
        data["tasks"] = [task.to_dict() for task in self.tasks]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "PipelineState":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known and k != "tasks"}
        values["tasks"] = [
            ArtifactTask.from_dict(t) for t in data.get("tasks") or [] if isinstance(t, dict)
        ]
        return cls(**values)


StateChanges = Union[dict, PipelineState, None]


class StateStore:
    """JSON file holding the single :class:`PipelineState` record."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.RLock()
        self._file_lock = FileLock(str(self.path) + ".lock", timeout=LOCK_TIMEOUT)

    def _read(self) -> PipelineState:
        if not self.path.exists():
            return PipelineState()
        try:
            with open(self.path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Unreadable pipeline state at {self.path}: {e}. Starting from idle.")
            return PipelineState()
        if not isinstance(data, dict):
            return PipelineState()
        return PipelineState.from_dict(data)

    def _write(self, state: PipelineState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".state-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(state.to_dict(), f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self) -> PipelineState:
        """Return the persisted state, or the idle template when absent."""
        with self._lock, self._file_lock:
            return self._read()

    def update(self, changes: StateChanges | Callable[[PipelineState], StateChanges]) -> PipelineState:
        """Apply ``changes`` to the latest persisted state and persist the result.

        ``changes`` is a dict of field values, or a callable receiving the
        current state and returning a dict, a full state, or None to commit
        nothing. Returns the state as persisted after the call.
        """
        with self._lock, self._file_lock:
            current = self._read()
            resolved = changes(current) if callable(changes) else changes

            if resolved is None:
                return current
            if isinstance(resolved, PipelineState):
                new_state = resolved
            else:
                new_state = replace(current, **resolved)

            self._write(new_state)
            return new_state

    def reset(self, **overrides) -> PipelineState:
        """Rewrite the whole record from the idle template."""
        with self._lock, self._file_lock:
            new_state = replace(PipelineState(), **overrides)
            self._write(new_state)
            return new_state
