"""Element descriptors, tag aliasing, and candidate collection.

A descriptor is the fingerprint of a clicked element. Collection walks a
tree for elements whose name is an acceptable alias of the requested tag
and keeps the ones a predicate accepts; scoring happens in
:mod:`element_matcher`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from difflib import SequenceMatcher
from typing import Callable, Iterable

import settings
from jsx_values import (
    class_name_of,
    element_text,
    references_props,
    scoring_text,
    string_attributes,
)
from syntax_tree import ExpressionSlot, JsxElement, SyntaxTree
from text_utils import has_class_overlap, normalize, sanitize_class_tokens, text_related

FUZZY_TEXT_THRESHOLD = 0.8

Predicate = Callable[[SyntaxTree, JsxElement], bool]


@dataclass(frozen=True)
class ElementDescriptor:
    """What the overlay knows about a clicked element."""

    tag: str
    identifier_text: str = ""
    text_content: str | None = None
    class_name: str | None = None
    owner_component_name: str | None = None
    owner_file_path: str | None = None

    @property
    def search_text(self) -> str:
        return self.text_content or self.identifier_text


@dataclass
class MatchCandidate:
    element: JsxElement
    class_name: str
    text: str
    attributes: list[tuple[str, str]] = field(default_factory=list)
    path: list[int] = field(default_factory=list)

    @property
    def node(self):
        return self.element.node


def possible_tag_names(tag: str) -> list[str]:
    """Lowercase tag, the tag verbatim, its capitalized form, plus known wrappers."""
    if not tag:
        return []
    lower = tag.lower()
    names = [lower, tag, lower[:1].upper() + lower[1:], *settings.TAG_ALIASES.get(lower, ())]
    return list(dict.fromkeys(names))


def create_candidate(tree: SyntaxTree, element: JsxElement) -> MatchCandidate:
    return MatchCandidate(
        element=element,
        class_name=class_name_of(tree, element),
        text=scoring_text(tree, element),
        attributes=string_attributes(tree, element),
        path=tree.ancestors(element.index),
    )


def collect_candidates(
    tree: SyntaxTree,
    acceptable_names: Iterable[str],
    predicate: Predicate,
) -> list[MatchCandidate]:
    names = set(acceptable_names)
    return [
        create_candidate(tree, element)
        for element in tree.live_elements()
        if element.name in names and predicate(tree, element)
    ]


# ─── Predicates ─────────────────────────────────────────────────────


def text_or_class_predicate(
    target_text: str | None,
    target_class: str | None,
    additional_token: str | None = None,
) -> Predicate:
    """Accept exact text, or class overlap on elements whose text is dynamic or empty.

    ``additional_token`` (the old size or font class) is checked before the
    general overlap since it pinpoints the element being restyled.
    """
    normalized_target = normalize(target_text)
    has_tokens = bool(sanitize_class_tokens(target_class))

    def predicate(tree: SyntaxTree, element: JsxElement) -> bool:
        info = element_text(tree, element)
        combined = normalize(info.text)
        if normalized_target and combined == normalized_target:
            return True
        if not has_tokens or not (info.has_dynamic or not combined):
            return False
        element_class = class_name_of(tree, element)
        if additional_token and additional_token in sanitize_class_tokens(element_class):
            return True
        return has_class_overlap(element_class, target_class)

    return predicate


def strict_text_predicate(target_text: str | None) -> Predicate:
    normalized_target = normalize(target_text)

    def predicate(tree: SyntaxTree, element: JsxElement) -> bool:
        return bool(normalized_target) and normalize(element_text(tree, element).text) == normalized_target

    return predicate


def dynamic_content_predicate() -> Predicate:
    def predicate(tree: SyntaxTree, element: JsxElement) -> bool:
        return element_text(tree, element).has_dynamic

    return predicate


def element_predicate(
    identifier: str | None,
    text_content: str | None = None,
    class_name: str | None = None,
) -> Predicate:
    """Exact identifier/text equality on text or attribute values, else class overlap on text-less elements."""
    targets = {normalize(identifier), normalize(text_content)} - {""}

    def predicate(tree: SyntaxTree, element: JsxElement) -> bool:
        info = element_text(tree, element)
        combined = normalize(info.text)
        if combined and combined in targets:
            return True
        if any(normalize(value) in targets for _, value in string_attributes(tree, element)):
            return True
        # Templates that render dynamic content stand for every rendered instance
        if class_name and not combined and not info.has_dynamic:
            return has_class_overlap(class_name_of(tree, element), class_name)
        return False

    return predicate


def fuzzy_element_predicate(
    identifier: str | None,
    text_content: str | None = None,
    class_name: str | None = None,
    threshold: float = FUZZY_TEXT_THRESHOLD,
) -> Predicate:
    """Substring or close edit-distance match on text and attribute values."""
    targets = [t for t in dict.fromkeys([normalize(identifier), normalize(text_content)]) if t]

    def similar(value: str) -> bool:
        value = normalize(value)
        if not value:
            return False
        return any(
            text_related(value, target) or SequenceMatcher(None, value, target).ratio() >= threshold
            for target in targets
        )

    def predicate(tree: SyntaxTree, element: JsxElement) -> bool:
        info = element_text(tree, element)
        if similar(info.text):
            return True
        if any(similar(value) for _, value in string_attributes(tree, element)):
            return True
        if not class_name or info.has_dynamic or normalize(info.text):
            return False
        return has_class_overlap(class_name_of(tree, element), class_name)

    return predicate


def prop_reference_predicate(prop_names: Iterable[str]) -> Predicate:
    """Accept elements whose children or attributes read one of the component's props."""
    names = {name for name in prop_names if name}

    def predicate(tree: SyntaxTree, element: JsxElement) -> bool:
        for slot in element.children:
            if isinstance(slot, ExpressionSlot) and references_props(tree, slot.node, names):
                return True
        for attribute in tree.attributes(element):
            value = tree.attribute_value(attribute)
            if value is not None and value.type == "jsx_expression" and references_props(tree, value, names):
                return True
        return False

    return predicate
