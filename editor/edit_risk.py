"""Static signals that an edit would reach beyond the clicked instance.

:meth:`EditRiskAnalyzer.analyze` inspects a whole file and is cached by
modification time. :meth:`EditRiskAnalyzer.check` combines that analysis
with facts about the usage site and returns a :class:`RiskWarning` when
the user should confirm a shared-component change.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from edit_errors import ParseError, RiskWarning
from file_resolver import FileResolver
from jsx_values import expression_inner
from mtime_cache import MtimeCache
from syntax_tree import SyntaxTree, parse_file

logger = logging.getLogger(__name__)

STYLE_PROPS = frozenset({"variant", "type", "color", "mode", "theme", "intent", "size"})
CLASSNAME_ACCEPTORS = frozenset({"className", "classes", "variants", "styles"})
DYNAMIC_CLASS_HINTS = (
    "${", "variant", "props.", "classnames(", "clsx(", "cva(", "twMerge(", "cn(", "twJoin(",
)
PROP_CLASS_HINTS = ("props.", "style.")

SHARED_STYLING_REASON = "Dynamic or shared styling detected (variant or prop-based)."

_IDENTIFIER_TYPES = frozenset({
    "identifier",
    "property_identifier",
    "shorthand_property_identifier",
    "shorthand_property_identifier_pattern",
})
_COMPONENT_NAME = re.compile(r"^[A-Z]")


@dataclass
class EditRiskAnalysis:
    file_path: str
    risky: bool = False
    reason: str | None = None
    signals: list[str] = field(default_factory=list)
    detected_props: list[str] = field(default_factory=list)
    component_name: str | None = None
    has_class_override: bool = False
    uses_variant_props: bool = False
    uses_dynamic_class: bool = False
    uses_prop_driven_classes: bool = False
    spreads_props: bool = False

    @property
    def metadata(self) -> dict:
        return {
            "hasClassOverride": self.has_class_override,
            "usesVariantProps": self.uses_variant_props,
            "usesDynamicClass": self.uses_dynamic_class,
            "usesPropDrivenClasses": self.uses_prop_driven_classes,
            "spreadsProps": self.spreads_props,
        }


def analyze_tree(tree: SyntaxTree, file_path: str) -> EditRiskAnalysis:
    """Collect shared-styling signals from a parsed file."""
    analysis = EditRiskAnalysis(file_path=file_path)
    analysis.component_name = detect_component_name(tree, file_path)

    detected: list[str] = []
    for node in tree.walk(_IDENTIFIER_TYPES):
        # JSX attribute names are markup, not props
        if node.parent is not None and node.parent.type == "jsx_attribute":
            continue
        name = tree.text(node)
        if name in STYLE_PROPS and name not in detected:
            detected.append(name)
    analysis.uses_variant_props = bool(detected)
    analysis.detected_props = detected

    for attribute in tree.walk({"jsx_attribute"}):
        name = tree.attribute_name(attribute)
        if name == "className":
            analysis.has_class_override = True
        if name not in CLASSNAME_ACCEPTORS:
            continue
        value = tree.attribute_value(attribute)
        if value is None:
            continue
        if value.type == "jsx_expression":
            inner = expression_inner(value)
            expression = tree.text(inner) if inner is not None else ""
            if any(hint in expression for hint in DYNAMIC_CLASS_HINTS):
                analysis.uses_dynamic_class = True
            if any(hint in expression for hint in PROP_CLASS_HINTS):
                analysis.uses_prop_driven_classes = True
        elif value.type == "string":
            if any(hint in tree.text(value)[1:-1] for hint in DYNAMIC_CLASS_HINTS):
                analysis.uses_dynamic_class = True

    for opening in tree.walk({"jsx_opening_element", "jsx_self_closing_element"}):
        for child in opening.named_children:
            if child.type != "jsx_expression":
                continue
            spread = expression_inner(child)
            if spread is None or spread.type != "spread_element":
                continue
            analysis.spreads_props = True
            argument = spread.named_children[0] if spread.named_children else None
            if argument is not None and argument.type == "identifier" and tree.text(argument) == "props":
                analysis.uses_prop_driven_classes = True

    signals = analysis.signals
    if analysis.uses_variant_props:
        signals.append("variant-prop")
    if analysis.uses_dynamic_class:
        signals.append("dynamic-class")
    if analysis.uses_prop_driven_classes:
        signals.append("class-from-props")
    if not analysis.has_class_override:
        signals.append("no-classname-prop")
    if analysis.spreads_props:
        signals.append("props-spread")

    analysis.risky = (
        analysis.uses_variant_props or analysis.uses_dynamic_class or analysis.uses_prop_driven_classes
    )
    if analysis.risky:
        analysis.reason = SHARED_STYLING_REASON
    return analysis


def detect_component_name(tree: SyntaxTree, file_path: str) -> str | None:
    """Default export name, else first capitalized declarator, else the file stem."""
    for statement in tree.walk({"export_statement"}):
        if not any(child.type == "default" for child in statement.children):
            continue
        declaration = statement.child_by_field_name("declaration") or statement.child_by_field_name("value")
        if declaration is None:
            continue
        if declaration.type == "identifier":
            return tree.text(declaration)
        name = declaration.child_by_field_name("name")
        if name is not None:
            return tree.text(name)

    for declarator in tree.walk({"variable_declarator"}):
        name = declarator.child_by_field_name("name")
        if name is not None and name.type == "identifier" and _COMPONENT_NAME.match(tree.text(name)):
            return tree.text(name)

    stem = Path(file_path).stem
    return stem if _COMPONENT_NAME.match(stem) else None


class EditRiskAnalyzer:
    """Cached per-file analysis plus the usage-aware risk gate."""

    def __init__(self, resolver: FileResolver) -> None:
        self.resolver = resolver
        self._cache = MtimeCache()

    def analyze(self, file_path: str | Path) -> EditRiskAnalysis:
        key = str(file_path)
        hit, cached = self._cache.lookup(key, file_path)
        if hit:
            return cached
        try:
            tree = parse_file(file_path)
        except FileNotFoundError:
            self._cache.invalidate(key)
            return EditRiskAnalysis(file_path=key)
        except (ParseError, OSError, UnicodeDecodeError) as exc:
            logger.warning("[SmartEdit] Unable to analyze %s: %s", file_path, exc)
            return EditRiskAnalysis(file_path=key)
        analysis = analyze_tree(tree, key)
        self._cache.store(key, file_path, analysis)
        return analysis

    def check(
        self,
        source_file: str | Path,
        element_name: str | None,
        has_inline_class: bool,
        force_global: bool = False,
        usage_prop_names: Iterable[str] = (),
    ) -> RiskWarning | None:
        """Decide whether editing ``element_name`` in ``source_file`` needs confirmation.

        Lowercase (native) elements are judged by the file they live in.
        Component tags are judged by the component's own file, the style
        props passed at this usage, and whether the usage carries its own
        className override.
        """
        if force_global:
            return None

        signals: list[str] = []
        detected: list[str] = []

        def include(analysis: EditRiskAnalysis) -> None:
            signals.extend(s for s in analysis.signals if s not in signals)
            detected.extend(p for p in analysis.detected_props if p not in detected)

        usage_props = list(dict.fromkeys(name.strip() for name in usage_prop_names if name and name.strip()))
        usage_style_props = [name for name in usage_props if name in STYLE_PROPS]
        if not has_inline_class:
            signals.append("no-inline-classname")
        if usage_style_props:
            signals.append("variant-prop")
            detected.extend(usage_style_props)

        page = self.analyze(source_file)

        def warning(message: str, details: list[str], file_path: str, component: str | None) -> RiskWarning:
            logger.info("[SmartEdit] Risk gate for <%s>: %s", element_name, ", ".join(signals))
            return RiskWarning(
                message,
                details=" ".join(details) or None,
                signals=signals,
                detected_props=detected,
                file_path=file_path,
                component_name=component,
            )

        if not element_name or not _COMPONENT_NAME.match(element_name):
            if not page.risky:
                return None
            include(page)
            default = f"Editing <{element_name}> may affect multiple instances in this file." if element_name else (
                "This file appears to rely on shared styling. Editing it may affect multiple instances."
            )
            return warning(page.reason or default, [page.reason] if page.reason else [],
                           page.file_path, page.component_name)

        component_file = self.resolver.resolve_component_import(Path(source_file), element_name)
        if component_file is None:
            if not has_inline_class:
                details = [
                    f"The <{element_name}> usage you're editing doesn't set a className override.",
                    "The component's source file could not be located to confirm whether it supports scoped styling.",
                ]
                if page.risky:
                    include(page)
                    details.append(page.reason or "")
                return warning(
                    f"<{element_name}> looks like a shared design component. Applying this edit will impact every instance.",
                    [d for d in details if d], str(source_file), element_name,
                )
            if usage_style_props:
                if page.risky:
                    include(page)
                return warning(
                    f"<{element_name}> appears to rely on shared styling.",
                    [f"This <{element_name}> usage passes styling props ({', '.join(usage_style_props)}), "
                     "so edits may apply globally."],
                    str(source_file), element_name,
                )
            if page.risky:
                include(page)
                return warning(page.reason or f"<{element_name}> appears to rely on shared styling.",
                               [page.reason] if page.reason else [], page.file_path, element_name)
            return None

        component = self.analyze(component_file)
        include(component)
        lacks_class_support = not component.has_class_override
        reasons: list[str] = []
        if usage_style_props:
            reasons.append(
                f"This <{element_name}> usage passes styling props ({', '.join(usage_style_props)}), "
                "so edits may apply globally."
            )
        if not has_inline_class:
            reasons.append(f"The <{element_name}> usage you're editing doesn't set a className override.")
        if lacks_class_support:
            reasons.append(
                f"{component.component_name or element_name} doesn't expose a className prop or other style override."
            )
        if component.reason:
            reasons.append(component.reason)

        should_warn = bool(usage_style_props) or component.risky or (not has_inline_class and lacks_class_support)
        if not should_warn:
            return None
        return warning(
            f"<{element_name}> looks like a shared design component. Applying this edit will change every instance.",
            reasons, component.file_path, component.component_name or element_name,
        )
