import asyncio
import json
import threading
from unittest.mock import patch

import pytest

from action_history import ActionHistory, current_action
from edit_errors import UndoError


@pytest.fixture()
def project(tmp_path):
    root = tmp_path / "project"
    (root / "app").mkdir(parents=True)
    (root / "app" / "page.tsx").write_text("before")
    return root


def _write(history, path, content):
    before = path.read_text() if path.exists() else None
    path.write_text(content)
    history.record_file_change(path, before, content, before is not None, True)


class TestRecording:
    def test_commit_on_success(self, project):
        history = ActionHistory(project)
        page = project / "app" / "page.tsx"
        with history.action("TextUpdate", "TextUpdate: <h1> in page.tsx"):
            _write(history, page, "after")

        summary = history.get_last_action_summary()
        assert summary["type"] == "TextUpdate"
        assert summary["fileCount"] == 1
        assert summary["files"] == ["app/page.tsx"]

    def test_discard_on_error(self, project):
        history = ActionHistory(project)
        page = project / "app" / "page.tsx"
        with pytest.raises(RuntimeError):
            with history.action("TextUpdate", "boom"):
                _write(history, page, "after")
                raise RuntimeError("boom")
        assert history.get_last_action_summary() is None

    def test_no_op_action_is_not_recorded(self, project):
        history = ActionHistory(project)
        page = project / "app" / "page.tsx"
        with history.action("TextUpdate", "same"):
            history.record_file_change(page, "before", "before", True, True)
        assert history.get_last_action_summary() is None

    def test_no_op_keeps_previous_entry(self, project):
        history = ActionHistory(project)
        page = project / "app" / "page.tsx"
        history.run_action("TextUpdate", "first", lambda: _write(history, page, "after"))
        history.run_action("TextUpdate", "second", lambda: None)
        assert history.get_last_action_summary()["label"] == "first"

    def test_first_baseline_wins(self, project):
        history = ActionHistory(project)
        page = project / "app" / "page.tsx"
        with history.action("ColorUpdate", "twice"):
            _write(history, page, "middle")
            _write(history, page, "final")
        history.undo_last_action()
        assert page.read_text() == "before"

    def test_missing_baseline_is_dropped(self, project):
        history = ActionHistory(project)
        page = project / "app" / "page.tsx"
        with history.action("TextUpdate", "unsafe"):
            history.record_file_change(page, None, "after", True, True)
        assert history.get_last_action_summary() is None

    def test_change_outside_action_is_ignored(self, project):
        history = ActionHistory(project)
        history.record_file_change(project / "app" / "page.tsx", "before", "after")
        assert history.get_last_action_summary() is None

    def test_run_action_returns_handler_result(self, project):
        history = ActionHistory(project)
        assert history.run_action("TextUpdate", "label", lambda: {"success": True}) == {"success": True}

    def test_current_action_is_bound_inside_block(self, project):
        history = ActionHistory(project)
        assert current_action() is None
        with history.action("VisualDelete", "delete") as context:
            assert current_action() is context
        assert current_action() is None


class TestUndo:
    def test_restores_content(self, project):
        history = ActionHistory(project)
        page = project / "app" / "page.tsx"
        history.run_action("TextUpdate", "edit", lambda: _write(history, page, "after"))

        result = history.undo_last_action()

        assert result["success"] is True
        assert result["restoredFiles"] == ["app/page.tsx"]
        assert result["action"]["label"] == "edit"
        assert page.read_text() == "before"
        assert history.get_last_action_summary() is None

    def test_deletes_created_file(self, project):
        history = ActionHistory(project)
        created = project / "app" / "New.tsx"
        history.run_action("Create", "create", lambda: _write(history, created, "new"))
        history.undo_last_action()
        assert not created.exists()

    def test_nothing_to_undo(self, project):
        result = ActionHistory(project).undo_last_action()
        assert result == {"success": False, "error": "Nothing to undo"}

    def test_undo_is_single_level(self, project):
        history = ActionHistory(project)
        page = project / "app" / "page.tsx"
        history.run_action("TextUpdate", "one", lambda: _write(history, page, "one"))
        history.run_action("TextUpdate", "two", lambda: _write(history, page, "two"))
        history.undo_last_action()
        assert page.read_text() == "one"
        assert history.undo_last_action()["success"] is False

    def test_failure_keeps_already_restored_files(self, project):
        history = ActionHistory(project)
        page = project / "app" / "page.tsx"
        other = project / "app" / "Other.tsx"
        other.write_text("other before")

        def edit_both():
            _write(history, page, "page after")
            _write(history, other, "other after")

        history.run_action("TextUpdate", "both", edit_both)

        real_restore = history._restore_file
        calls = []

        def flaky_restore(record):
            calls.append(record.relative_path)
            if len(calls) == 2:
                raise UndoError("disk full", record.absolute_path)
            real_restore(record)

        with patch.object(history, "_restore_file", side_effect=flaky_restore):
            result = history.undo_last_action()

        assert result["success"] is False
        assert result["error"] == "disk full"
        assert len(result["restoredFiles"]) == 1
        restored = project / result["restoredFiles"][0]
        assert restored.read_text() in ("before", "other before")

    def test_refuses_paths_outside_project(self, project, tmp_path):
        history = ActionHistory(project)
        outside = tmp_path / "outside.tsx"
        outside.write_text("x")
        history.run_action("TextUpdate", "outside", lambda: _write(history, outside, "y"))

        result = history.undo_last_action()

        assert result["success"] is False
        assert "outside project" in result["error"]
        assert outside.read_text() == "y"


class TestPersistence:
    def test_entry_survives_restart(self, project):
        page = project / "app" / "page.tsx"
        first = ActionHistory(project)
        first.run_action("TextUpdate", "persisted", lambda: _write(first, page, "after"))

        data = json.loads((project / ".visual-edit-history.json").read_text())
        assert data["label"] == "persisted"
        assert data["files"][0]["beforeContent"] == "before"
        assert data["files"][0]["existedBefore"] is True

        second = ActionHistory(project)
        assert second.get_last_action_summary()["label"] == "persisted"
        assert second.undo_last_action()["success"] is True
        assert page.read_text() == "before"
        assert not (project / ".visual-edit-history.json").exists()

    def test_corrupt_history_file_is_ignored(self, project):
        (project / ".visual-edit-history.json").write_text("{not json")
        assert ActionHistory(project).get_last_action_summary() is None

    def test_clear(self, project):
        history = ActionHistory(project)
        page = project / "app" / "page.tsx"
        history.run_action("TextUpdate", "edit", lambda: _write(history, page, "after"))
        history.clear()
        assert history.get_last_action_summary() is None
        assert not (project / ".visual-edit-history.json").exists()


class TestContextIsolation:
    @pytest.mark.asyncio
    async def test_concurrent_actions_record_separately(self, project):
        history = ActionHistory(project)
        first = project / "app" / "First.tsx"
        second = project / "app" / "Second.tsx"
        first.write_text("first")
        second.write_text("second")
        barrier = threading.Barrier(2, timeout=5)

        def handler(path):
            def run():
                barrier.wait()
                _write(history, path, path.read_text() + " edited")
                barrier.wait()
                context = current_action()
                return context.label, list(context.files)
            return run

        results = await asyncio.gather(
            asyncio.to_thread(history.run_action, "TextUpdate", "first", handler(first)),
            asyncio.to_thread(history.run_action, "TextUpdate", "second", handler(second)),
        )

        assert results == [
            ("first", [str(first.resolve())]),
            ("second", [str(second.resolve())]),
        ]
        assert history.get_last_action_summary()["fileCount"] == 1
