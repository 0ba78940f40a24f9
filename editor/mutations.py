"""Mutation primitives over a :class:`~syntax_tree.SyntaxTree`.

Every function queues byte-range edits on the tree; nothing is written
until the caller serializes, validates, and saves.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import tree_sitter

from class_tokens import Segment, TokenEdit, apply_token_edit
from jsx_values import (
    class_attribute,
    expression_inner,
    is_meaningful_child,
    string_literal_value,
    text_run_value,
)
from syntax_tree import ExpressionSlot, JsxElement, SyntaxTree, TextRun
from text_utils import normalize

logger = logging.getLogger(__name__)

DATA_VALUE_KEYS = frozenset({
    "label", "title", "text", "name", "value", "heading", "content", "id", "body", "description",
})

_JSX_TEXT_ESCAPES = {"{": "&#123;", "}": "&#125;", "<": "&lt;", ">": "&gt;"}


def escape_jsx_text(text: str) -> str:
    return "".join(_JSX_TEXT_ESCAPES.get(char, char) for char in text)


def _js_string_body(text: str, quote: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("\n", "\\n")
    if quote == "`":
        return escaped.replace("`", "\\`").replace("${", "\\${")
    return escaped.replace(quote, "\\" + quote)


# ─── Text ───────────────────────────────────────────────────────────


def _replace_preserving_whitespace(tree: SyntaxTree, start: int, end: int, new_text: str) -> None:
    raw = tree.source[start:end]
    leading = len(raw) - len(raw.lstrip())
    trailing = len(raw) - len(raw.rstrip())
    tree.replace_range(start + leading, end - trailing, new_text)


def replace_string_literal(tree: SyntaxTree, node: tree_sitter.Node, new_value: str) -> None:
    """Rewrite a string or template literal's body, keeping its quote style."""
    quote = tree.text(node)[0]
    tree.replace_range(node.start_byte + 1, node.end_byte - 1, _js_string_body(new_value, quote))


def replace_text_child(tree: SyntaxTree, element: JsxElement, old_text: str, new_text: str) -> bool:
    """Replace the static text child equal to ``old_text``.

    Text runs keep their surrounding whitespace; ``{"..."}`` children keep
    their quotes. Returns False when no child matches.
    """
    target = normalize(old_text)
    if not target:
        return False
    for slot in element.children:
        if isinstance(slot, TextRun):
            if normalize(text_run_value(tree, slot)) == target:
                _replace_preserving_whitespace(tree, slot.start, slot.end, escape_jsx_text(new_text))
                return True
        elif isinstance(slot, ExpressionSlot):
            inner = expression_inner(slot.node)
            if inner is not None and normalize(string_literal_value(tree, inner)) == target:
                replace_string_literal(tree, inner, new_text)
                return True
    return False


def set_attribute_string(tree: SyntaxTree, attribute: tree_sitter.Node, new_value: str) -> bool:
    """Set a static attribute value, keeping ``"..."``/``'...'`` or ``{"..."}`` form."""
    value = tree.attribute_value(attribute)
    if value is None:
        return False
    if value.type == "string":
        quote = tree.text(value)[0]
        entity = "&quot;" if quote == '"' else "&apos;"
        tree.replace_range(value.start_byte + 1, value.end_byte - 1, new_value.replace(quote, entity))
        return True
    if value.type == "jsx_expression":
        inner = expression_inner(value)
        if inner is not None and string_literal_value(tree, inner) is not None:
            replace_string_literal(tree, inner, new_value)
            return True
    return False


# ─── Class tokens ───────────────────────────────────────────────────


@dataclass
class ClassEditOutcome:
    changed: bool = False
    unchanged_axes: list[str] = field(default_factory=list)
    synthesized: bool = False


class _Leaf:
    """A static string inside a class expression, split into editable segments."""

    def __init__(self, tree: SyntaxTree, node: tree_sitter.Node) -> None:
        self.node = node
        self.ranges: list[tuple[int, int]] = []
        if node.type == "string":
            self.ranges.append((node.start_byte + 1, node.end_byte - 1))
        else:
            cursor = node.start_byte + 1
            for child in node.named_children:
                if child.type == "template_substitution":
                    self.ranges.append((cursor, child.start_byte))
                    cursor = child.end_byte
            self.ranges.append((cursor, node.end_byte - 1))
        last = len(self.ranges) - 1
        self.segments = [
            Segment(tree.slice(start, end), after_substitution=i > 0, before_substitution=i < last)
            for i, (start, end) in enumerate(self.ranges)
        ]

    def flush(self, tree: SyntaxTree) -> bool:
        changed = False
        for (start, end), segment in zip(self.ranges, self.segments):
            if segment.changed:
                tree.replace_range(start, end, segment.render())
                changed = True
        return changed


def _class_leaves(node: tree_sitter.Node | None) -> list[tree_sitter.Node]:
    """Static string leaves that contribute class tokens to an expression."""
    if node is None:
        return []
    if node.type in ("string", "template_string"):
        return [node]
    if node.type == "parenthesized_expression":
        return [leaf for child in node.named_children for leaf in _class_leaves(child)]
    if node.type == "ternary_expression":
        return _class_leaves(node.child_by_field_name("consequence")) + _class_leaves(
            node.child_by_field_name("alternative")
        )
    if node.type == "binary_expression":
        return _class_leaves(node.child_by_field_name("left")) + _class_leaves(node.child_by_field_name("right"))
    if node.type == "call_expression":
        arguments = node.child_by_field_name("arguments")
        return [leaf for child in (arguments.named_children if arguments else []) for leaf in _class_leaves(child)]
    if node.type == "array":
        return [leaf for child in node.named_children for leaf in _class_leaves(child)]
    return []


def _apply_to_leaves(leaves: list[_Leaf], edits: list[TokenEdit], append_single: bool) -> list[str]:
    """Run each edit over every leaf; returns the axes no leaf could take."""
    unchanged: list[str] = []
    for edit in edits:
        touched = False
        for leaf in leaves:
            if apply_token_edit(leaf.segments, edit, leaf.segments[-1] if append_single else None):
                touched = True
            elif any(edit.matches(token) for segment in leaf.segments for _, token in segment.pairs):
                touched = True
        if not touched:
            unchanged.append(edit.axis)
    return unchanged


def _flush(tree: SyntaxTree, leaves: list[_Leaf]) -> bool:
    changed = False
    for leaf in leaves:
        changed = leaf.flush(tree) or changed
    return changed


def edit_class_tokens(tree: SyntaxTree, element: JsxElement, edits: list[TokenEdit]) -> ClassEditOutcome:
    """Apply class-token edits to an element's ``className``.

    A missing attribute is synthesized; static strings and template quasis
    are edited in place; helper calls get the new tokens as an extra
    argument. Axes that could not be applied are listed in the outcome.
    """
    if not edits:
        return ClassEditOutcome()
    new_tokens = " ".join(edit.new_token for edit in edits)
    attribute = class_attribute(tree, element)

    if attribute is None:
        name_node = element.opening.child_by_field_name("name")
        if name_node is None:
            return ClassEditOutcome(unchanged_axes=[edit.axis for edit in edits])
        anchor = element.opening.child_by_field_name("type_arguments") or name_node
        tree.insert_at(anchor.end_byte, f' className="{new_tokens}"')
        return ClassEditOutcome(changed=True, synthesized=True)

    value = tree.attribute_value(attribute)
    if value is None:
        tree.insert_at(attribute.end_byte, f'="{new_tokens}"')
        return ClassEditOutcome(changed=True, synthesized=True)

    inner = expression_inner(value) if value.type == "jsx_expression" else value
    if inner is not None and inner.type in ("string", "template_string"):
        leaf = _Leaf(tree, inner)
        unchanged = _apply_to_leaves([leaf], edits, append_single=True)
        return ClassEditOutcome(changed=_flush(tree, [leaf]), unchanged_axes=unchanged)

    leaves = [_Leaf(tree, node) for node in _class_leaves(inner)]
    unchanged = _apply_to_leaves(leaves, edits, append_single=False)
    missing = [edit for edit in edits if edit.axis in unchanged]

    if missing and inner is not None and inner.type == "ternary_expression":
        branch_starts = {
            branch.start_byte
            for branch in (inner.child_by_field_name("consequence"), inner.child_by_field_name("alternative"))
            if branch is not None and branch.type in ("string", "template_string")
        }
        branch_leaves = [leaf for leaf in leaves if leaf.node.start_byte in branch_starts]
        if len(branch_leaves) == 2:
            _apply_to_leaves(branch_leaves, missing, append_single=True)
            unchanged, missing = [], []

    changed = _flush(tree, leaves)

    if missing and inner is not None and inner.type == "call_expression":
        arguments = inner.child_by_field_name("arguments")
        if arguments is not None:
            tokens = " ".join(edit.new_token for edit in missing)
            separator = ", " if arguments.named_children else ""
            tree.insert_at(arguments.end_byte - 1, f'{separator}"{tokens}"')
            changed, unchanged = True, []

    if unchanged:
        logger.info(
            "[Mutation] className on <%s> is dynamic; no change for %s",
            element.name, ", ".join(unchanged),
        )
    return ClassEditOutcome(changed=changed, unchanged_axes=unchanged)


# ─── Deletion ───────────────────────────────────────────────────────


def _delete_with_line(tree: SyntaxTree, start: int, end: int) -> None:
    """Delete a range, swallowing its whole line when nothing else is on it."""
    source = tree.source
    line_start = source.rfind(b"\n", 0, start) + 1
    line_end = source.find(b"\n", end)
    if line_end == -1:
        line_end = len(source)
    if not source[line_start:start].strip() and not source[end:line_end].strip():
        tree.delete_range(line_start, min(line_end + 1, len(source)))
    else:
        tree.delete_range(start, end)


def _replace_root_with_null(tree: SyntaxTree, element: JsxElement) -> None:
    parent = element.node.parent
    replacement = "{null}" if parent is not None and parent.type == "jsx_attribute" else "null"
    tree.replace_range(element.node.start_byte, element.node.end_byte, replacement)


def remove_element(tree: SyntaxTree, index: int) -> list[int]:
    """Remove an element and prune ancestors left without meaningful children.

    A JSX root (an element directly in expression position) is replaced
    with ``null``, whether it is removed directly or left empty by the
    removal. Returns the removed indices.
    """
    element = tree.elements[index]
    removed = [index]
    if element.parent is None:
        _replace_root_with_null(tree, element)
        tree.detach(index)
        return removed

    _delete_with_line(tree, element.node.start_byte, element.node.end_byte)
    tree.detach(index)
    parent_index = element.parent
    while parent_index is not None:
        parent = tree.elements[parent_index]
        if any(is_meaningful_child(tree, slot) for slot in parent.children):
            break
        removed.append(parent_index)
        if parent.parent is None:
            _replace_root_with_null(tree, parent)
            tree.detach(parent_index)
            break
        _delete_with_line(tree, parent.node.start_byte, parent.node.end_byte)
        tree.detach(parent_index)
        parent_index = parent.parent
    if len(removed) > 1:
        logger.info("[Mutation] Pruned %d empty ancestor(s) of <%s>", len(removed) - 1, element.name)
    return removed


# ─── Data collections ───────────────────────────────────────────────


def _entry_matches(tree: SyntaxTree, entry: tree_sitter.Node, target: str) -> bool:
    if entry.type in ("string", "template_string"):
        return normalize(string_literal_value(tree, entry)) == target
    if entry.type != "object":
        return False
    for pair in entry.named_children:
        if pair.type != "pair":
            continue
        key = pair.child_by_field_name("key")
        value = pair.child_by_field_name("value")
        if key is None or value is None:
            continue
        key_name = tree.text(key).strip("\"'")
        if key_name in DATA_VALUE_KEYS and normalize(string_literal_value(tree, value)) == target:
            return True
    return False


def find_collection_entries(tree: SyntaxTree, texts: list[str]) -> list[tuple[tree_sitter.Node, int]]:
    """(array, entry index) for every array entry whose display value matches one of ``texts``."""
    targets = {normalize(text) for text in texts} - {""}
    matches = []
    for array in tree.walk({"array"}):
        entries = [child for child in array.named_children if child.type != "comment"]
        for position, entry in enumerate(entries):
            if any(_entry_matches(tree, entry, target) for target in targets):
                matches.append((array, position))
    return matches


def remove_collection_entry(tree: SyntaxTree, array: tree_sitter.Node, position: int) -> None:
    """Remove one entry along with the separator that tied it to its neighbour."""
    entries = [child for child in array.named_children if child.type != "comment"]
    entry = entries[position]
    if len(entries) == 1:
        tree.delete_range(array.start_byte + 1, array.end_byte - 1)
    elif position < len(entries) - 1:
        tree.delete_range(entry.start_byte, entries[position + 1].start_byte)
    else:
        tree.delete_range(entries[position - 1].end_byte, entry.end_byte)
