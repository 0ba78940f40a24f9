"""Single-level undo ledger for logical edit actions.

One logical action (a text change, a deletion, ...) may write several
files. Work runs inside :meth:`ActionHistory.action`, which binds an
ActionContext in a ``contextvars.ContextVar``; every write records its
before/after content through :meth:`ActionHistory.record_file_change`.
On success the context is committed as the one undoable ActionEntry and
persisted to the project root; on error it is discarded.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterator, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

import settings
from edit_errors import UndoError
from file_utils import atomic_write, is_within, relative_to_root

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FileChangeRecord(_CamelModel):
    absolute_path: str
    relative_path: str
    before_content: str | None = None
    after_content: str | None = None
    existed_before: bool = False
    existed_after: bool = False

    def is_meaningful(self) -> bool:
        if self.existed_before != self.existed_after:
            return True
        return self.before_content != self.after_content


class ActionEntry(_CamelModel):
    id: str
    timestamp: str
    type: str
    label: str
    details: dict[str, Any] | None = None
    files: list[FileChangeRecord] = Field(default_factory=list)


class ActionContext:
    """File changes gathered while one logical action runs."""

    def __init__(self, action_type: str, label: str, details: dict[str, Any] | None = None) -> None:
        self.type = action_type
        self.label = label
        self.details = details
        self.files: dict[str, FileChangeRecord] = {}


_active_context: ContextVar[ActionContext | None] = ContextVar("active_action_context", default=None)


def current_action() -> ActionContext | None:
    return _active_context.get()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ActionHistory:
    """Holds at most one committed ActionEntry for a project.

    Internal state:
        _last_action: the current undoable entry, or None
        _lock: threading.Lock guarding _last_action and the history file
    """

    def __init__(self, project_root: str | Path, history_filename: str = settings.HISTORY_FILENAME) -> None:
        self.project_root = Path(project_root).resolve()
        self.history_path = self.project_root / history_filename
        self._last_action: ActionEntry | None = None
        self._lock = threading.Lock()
        self._restore()

    # -- recording -----------------------------------------------------------

    @contextmanager
    def action(self, action_type: str, label: str,
               details: dict[str, Any] | None = None) -> Iterator[ActionContext]:
        """Run a block as one logical action; commit on success, discard on error."""
        context = ActionContext(action_type, label, details)
        token = _active_context.set(context)
        try:
            yield context
        except BaseException as exc:
            logger.warning("[ActionHistory] Discarding action '%s' after error: %s", label, exc)
            raise
        else:
            self._commit(context)
        finally:
            _active_context.reset(token)

    def run_action(self, action_type: str, label: str, handler: Callable[[], T],
                   details: dict[str, Any] | None = None) -> T:
        with self.action(action_type, label, details):
            return handler()

    def record_file_change(
        self,
        path: str | Path,
        before_content: str | None,
        after_content: str | None,
        existed_before: bool | None = None,
        existed_after: bool | None = None,
    ) -> None:
        """Record one write in the active action.

        The first ``before_content`` seen for a path is kept as its
        baseline; the latest ``after_content`` always wins.
        """
        context = _active_context.get()
        if context is None:
            logger.info("[ActionHistory] No active action; change to %s not recorded", path)
            return

        absolute = str(Path(path).resolve())
        if existed_before is None:
            existed_before = before_content is not None
        if existed_after is None:
            existed_after = after_content is not None

        record = context.files.get(absolute)
        if record is None:
            context.files[absolute] = FileChangeRecord(
                absolute_path=absolute,
                relative_path=relative_to_root(self.project_root, absolute),
                before_content=before_content,
                after_content=after_content,
                existed_before=existed_before,
                existed_after=existed_after,
            )
            return
        record.after_content = after_content
        record.existed_after = existed_after

    def _commit(self, context: ActionContext) -> None:
        files: list[FileChangeRecord] = []
        for record in context.files.values():
            if record.existed_before and record.before_content is None:
                logger.warning(
                    "[ActionHistory] Dropping %s from '%s': no baseline content captured",
                    record.relative_path, context.label,
                )
                continue
            if record.is_meaningful():
                files.append(record)

        if not files:
            logger.info("[ActionHistory] Action '%s' changed no files; nothing recorded", context.label)
            return

        entry = ActionEntry(
            id=str(uuid.uuid4()),
            timestamp=_now_iso(),
            type=context.type,
            label=context.label,
            details=context.details,
            files=files,
        )
        with self._lock:
            self._last_action = entry
            self._persist()
        logger.info("[ActionHistory] Recorded '%s' touching %d file(s)", entry.label, len(files))

    # -- reads ---------------------------------------------------------------

    def get_last_action_summary(self) -> dict[str, Any] | None:
        with self._lock:
            entry = self._last_action
        if entry is None:
            return None
        return {
            "id": entry.id,
            "type": entry.type,
            "label": entry.label,
            "timestamp": entry.timestamp,
            "fileCount": len(entry.files),
            "files": [record.relative_path for record in entry.files],
        }

    # -- undo ----------------------------------------------------------------

    def undo_last_action(self) -> dict[str, Any]:
        """Restore every file of the last action to its prior state.

        Files restored before a failure stay restored and the entry is kept.
        """
        with self._lock:
            entry = self._last_action
            if entry is None:
                return {"success": False, "error": "Nothing to undo"}

            restored: list[str] = []
            try:
                for record in entry.files:
                    self._restore_file(record)
                    restored.append(record.relative_path)
            except UndoError as exc:
                logger.error("[ActionHistory] Undo of '%s' failed: %s", entry.label, exc.message)
                return {"success": False, "error": exc.message, "restoredFiles": restored}

            self._last_action = None
            self._persist()

        logger.info("[ActionHistory] Undid '%s' (%d file(s))", entry.label, len(restored))
        return {
            "success": True,
            "restoredFiles": restored,
            "action": {"id": entry.id, "type": entry.type, "label": entry.label},
        }

    def _restore_file(self, record: FileChangeRecord) -> None:
        target = Path(record.absolute_path)
        if not is_within(self.project_root, target):
            raise UndoError(f"Refusing to restore file outside project: {record.absolute_path}",
                            record.absolute_path)
        try:
            if record.existed_before:
                atomic_write(target, record.before_content or "")
            else:
                target.unlink(missing_ok=True)
        except OSError as exc:
            raise UndoError(f"Failed to restore {record.relative_path}: {exc}", record.absolute_path) from exc

    def clear(self) -> None:
        with self._lock:
            self._last_action = None
            self._persist()

    # -- persistence ---------------------------------------------------------

    def _persist(self) -> None:
        """Write the current entry to disk, or remove the file when there is none."""
        try:
            if self._last_action is None:
                self.history_path.unlink(missing_ok=True)
            else:
                atomic_write(self.history_path, self._last_action.model_dump_json(by_alias=True, indent=2))
        except OSError as exc:
            logger.warning("[ActionHistory] Could not persist history to %s: %s", self.history_path, exc)

    def _restore(self) -> None:
        if not self.history_path.is_file():
            return
        try:
            data = json.loads(self.history_path.read_text(encoding="utf-8"))
            self._last_action = ActionEntry.model_validate(data)
        except (OSError, ValueError, PydanticValidationError) as exc:
            logger.warning("[ActionHistory] Ignoring unreadable history file %s: %s", self.history_path, exc)
            self._last_action = None
