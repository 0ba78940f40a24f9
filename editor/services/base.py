"""Shared plumbing for the edit services.

Each service resolves a descriptor to a file, matches one element,
consults the risk gate, mutates the tree, and saves through
:meth:`EditService.save`, which validates before writing and records the
change in the active history action.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from action_history import ActionHistory
from candidates import ElementDescriptor, Predicate
from edit_errors import EditError, RiskWarning, ValidationError
from edit_risk import EditRiskAnalyzer
from element_matcher import find_local_match
from file_resolver import FileResolver
from file_utils import atomic_write, relative_to_root, safe_read
from jsx_values import attribute_string_value, has_inline_class, static_expression_value, text_run_value
from syntax_tree import ExpressionSlot, JsxElement, SyntaxTree, TextRun, format_source, serialize, validate
from text_utils import normalize

logger = logging.getLogger(__name__)

_COMPONENT_TAG = re.compile(r"^[A-Z]")


@dataclass
class ElementMatchContext:
    """A matched element plus what mutation and the risk gate need to know about it."""

    file_path: Path
    tree: SyntaxTree
    element: JsxElement
    element_name: str
    has_inline_class: bool
    usage_prop_names: list[str] = field(default_factory=list)
    match_kind: str = "local"
    score: float = 1.0
    reason: str = ""


@dataclass
class UsageMatch:
    """A ``<Component>`` instantiation carrying the target text as a literal."""

    component_name: str
    has_inline_class_override: bool
    prop_names: list[str]
    file_path: Path | None = None
    element_index: int = -1
    matched_prop: str | None = None


def find_component_usage(tree: SyntaxTree, text: str) -> UsageMatch | None:
    """First capitalized element with an attribute or child literal equal to ``text``."""
    target = normalize(text)
    if not target:
        return None
    for element in tree.live_elements():
        if not element.name or not _COMPONENT_TAG.match(element.name):
            continue
        attribute_names = [name for name in (tree.attribute_name(a) for a in tree.attributes(element)) if name]
        for attribute in tree.attributes(element):
            value = attribute_string_value(tree, tree.attribute_value(attribute))
            if value and normalize(value) == target:
                return UsageMatch(
                    component_name=element.name,
                    has_inline_class_override="className" in attribute_names,
                    prop_names=attribute_names,
                    element_index=element.index,
                    matched_prop=tree.attribute_name(attribute),
                )
        for slot in element.children:
            if isinstance(slot, TextRun):
                value = text_run_value(tree, slot)
            elif isinstance(slot, ExpressionSlot):
                value = static_expression_value(tree, slot.node)
            else:
                continue
            if value and normalize(value) == target:
                return UsageMatch(
                    component_name=element.name,
                    has_inline_class_override="className" in attribute_names,
                    prop_names=attribute_names + ["children"],
                    element_index=element.index,
                    matched_prop="children",
                )
    return None


class EditService:
    """Base class: resolution, matching, risk gating, and validated writes."""

    service_name = "Edit"

    def __init__(
        self,
        project_root: str | Path,
        history: ActionHistory,
        resolver: FileResolver | None = None,
        risk: EditRiskAnalyzer | None = None,
    ) -> None:
        self.project_root = Path(project_root).resolve()
        self.history = history
        self.resolver = resolver or FileResolver(self.project_root)
        self.risk = risk or EditRiskAnalyzer(self.resolver)

    # -- boundary ------------------------------------------------------------

    def run(self, operation: Callable[[], dict[str, Any]]) -> dict[str, Any]:
        """Convert expected editor errors into result dicts."""
        try:
            return operation()
        except EditError as exc:
            if not isinstance(exc, RiskWarning):
                logger.info("[%s] %s", self.service_name, exc.message)
            return exc.to_result()

    def relative(self, path: Path) -> str:
        return relative_to_root(self.project_root, path)

    # -- resolution ----------------------------------------------------------

    def viewed_file(self, source_file: str | None) -> Path:
        return self.resolver.resolve_source_path(source_file)

    def load(self, path: Path) -> SyntaxTree | None:
        return self.resolver.load_tree(path)

    def match_in_file(
        self,
        path: Path,
        descriptor: ElementDescriptor,
        predicate: Predicate,
        viewed: Path,
        tree: SyntaxTree | None = None,
    ) -> ElementMatchContext | None:
        """Match one element in ``path``; None when nothing passes the predicate.

        Raises:
            AmbiguousMatchError: Several elements match equally well.
        """
        tree = tree or self.load(path)
        if tree is None:
            return None
        result = find_local_match(tree, descriptor.tag, predicate, descriptor.class_name, descriptor.search_text)
        if result is None:
            return None
        element = result.element
        return ElementMatchContext(
            file_path=path,
            tree=tree,
            element=element,
            element_name=element.name or descriptor.tag,
            has_inline_class=has_inline_class(tree, element),
            match_kind="local" if same_file(path, viewed) else "component",
            score=result.score,
            reason=result.reason,
        )

    def locate(self, descriptor: ElementDescriptor, viewed: Path, predicate: Predicate) -> ElementMatchContext | None:
        """Resolve the descriptor's file, then match within it."""
        path = self.resolver.resolve_file(descriptor, viewed)
        if path is None:
            return None
        return self.match_in_file(path, descriptor, predicate, viewed)

    def find_usage(self, tree: SyntaxTree | None, path: Path | None, text: str) -> UsageMatch | None:
        """Usage carrying ``text`` in the given tree, else anywhere in the project."""
        if tree is not None:
            usage = find_component_usage(tree, text)
            if usage is not None:
                usage.file_path = path
                return usage
        for candidate in self.resolver.iter_source_files():
            if path is not None and same_file(candidate, path):
                continue
            candidate_tree = self.load(candidate)
            if candidate_tree is None:
                continue
            usage = find_component_usage(candidate_tree, text)
            if usage is not None:
                usage.file_path = candidate
                return usage
        return None

    def component_file_for(self, usage_file: Path, component_name: str) -> Path | None:
        return (
            self.resolver.resolve_component_import(usage_file, component_name)
            or self.resolver.find_component_file(component_name)
        )

    # -- risk ----------------------------------------------------------------

    def gate(self, context: ElementMatchContext, force_global: bool) -> None:
        """Raise RiskWarning when the match should not be edited without confirmation.

        Elements in the viewed page are exempt when they carry their own
        className; elements inside another component's file always count.
        """
        if force_global:
            return
        warning = self.risk.check(
            context.file_path,
            context.element_name,
            context.has_inline_class,
            usage_prop_names=context.usage_prop_names,
        )
        if warning is None:
            return
        if context.match_kind == "local" and context.has_inline_class:
            return
        raise warning

    # -- writes --------------------------------------------------------------

    def save(self, tree: SyntaxTree, path: Path) -> bool:
        """Serialize, format, validate, write, and record one file.

        Returns False when the edits produced no change.

        Raises:
            ValidationError: The mutated source does not re-parse.
        """
        before = safe_read(path)
        output = serialize(tree)
        if not validate(output, path):
            raise ValidationError(
                f"Edit to {self.relative(path)} would produce invalid source; file left unchanged",
                str(path),
            )
        formatted = format_source(output, path)
        if formatted != output and not validate(formatted, path):
            logger.warning("[%s] Formatter output for %s did not parse; using unformatted", self.service_name, path)
            formatted = output
        if before is not None and formatted == before:
            return False
        atomic_write(path, formatted)
        self.history.record_file_change(path, before, formatted, before is not None, True)
        logger.info("[%s] Wrote %s", self.service_name, self.relative(path))
        return True


def same_file(a: Path | None, b: Path | None) -> bool:
    if a is None or b is None:
        return False
    return Path(a).resolve() == Path(b).resolve()
