"""Error taxonomy for resolution, mutation, and undo failures.

Every error converts to the outbound result dict returned by the edit
services, so callers never see a raw exception for an expected failure.
"""

from __future__ import annotations

from typing import Any


class EditError(Exception):
    """Base class for expected editor failures."""

    def __init__(self, message: str, file_path: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.file_path = file_path

    def to_result(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": False, "error": self.message}
        if self.file_path:
            result["filePath"] = self.file_path
        return result


class ParseError(EditError):
    """Source could not be parsed; the file is treated as unmatchable."""


class NoMatchError(EditError):
    """No confident candidate anywhere in the fallback chain."""


class AmbiguousMatchError(NoMatchError):
    """Several candidates match and none is confidently best."""


class ValidationError(EditError):
    """The mutated source failed re-parse validation and was not written."""


class UndoError(EditError):
    """A file could not be restored while undoing an action."""


class RiskWarning(EditError):
    """A confident match exists but editing it would affect other instances.

    Not a failure: the result carries ``warning: True`` and the caller may
    retry with ``forceGlobal``.
    """

    def __init__(
        self,
        message: str,
        *,
        details: str | None = None,
        signals: list[str] | None = None,
        detected_props: list[str] | None = None,
        file_path: str | None = None,
        component_name: str | None = None,
    ) -> None:
        super().__init__(message, file_path)
        self.details = details
        self.signals = list(signals or [])
        self.detected_props = list(detected_props or [])
        self.component_name = component_name

    def to_result(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "success": False,
            "warning": True,
            "message": self.message,
            "signals": self.signals,
        }
        if self.details:
            result["details"] = self.details
        if self.detected_props:
            result["detectedProps"] = self.detected_props
        if self.file_path:
            result["filePath"] = self.file_path
        if self.component_name:
            result["componentName"] = self.component_name
        return result
