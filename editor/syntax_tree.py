"""Mutable JSX syntax trees backed by tree-sitter.

Parsing produces an arena of JSX elements addressed by integer index, each
with the index of its enclosing JSX element and an ordered list of child
slots (static text runs, expression containers, child element indices).
Mutations never touch the tree-sitter tree: they are queued as byte-range
edits over the original source and applied by :func:`serialize`, so code
outside the edited ranges is preserved byte for byte.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Union

import tree_sitter
import tree_sitter_javascript
import tree_sitter_typescript

import settings
from edit_errors import ParseError

logger = logging.getLogger(__name__)

# ─── Grammars ───────────────────────────────────────────────────────

ELEMENT_TYPES = frozenset({"jsx_element", "jsx_self_closing_element"})

_GRAMMARS = {
    ".tsx": (tree_sitter_typescript, "language_tsx"),
    ".jsx": (tree_sitter_typescript, "language_tsx"),
    ".ts": (tree_sitter_typescript, "language_typescript"),
    ".js": (tree_sitter_javascript, "language"),
    ".mjs": (tree_sitter_javascript, "language"),
    ".cjs": (tree_sitter_javascript, "language"),
}
_DEFAULT_SUFFIX = ".tsx"
_languages: dict[str, tree_sitter.Language] = {}


def _language_for(path: str | Path | None) -> tree_sitter.Language:
    suffix = Path(path).suffix.lower() if path else _DEFAULT_SUFFIX
    if suffix not in _GRAMMARS:
        suffix = _DEFAULT_SUFFIX
    language = _languages.get(suffix)
    if language is None:
        module, func_name = _GRAMMARS[suffix]
        language = tree_sitter.Language(getattr(module, func_name)())
        _languages[suffix] = language
    return language


def _parse_bytes(source: bytes, path: str | Path | None) -> tree_sitter.Tree:
    # Parsers are not thread-safe; requests run in worker threads.
    parser = tree_sitter.Parser()
    parser.language = _language_for(path)
    return parser.parse(source)


def _first_error_line(node: tree_sitter.Node) -> int | None:
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type == "ERROR" or current.is_missing:
            return current.start_point[0] + 1
        stack.extend(child for child in reversed(current.children) if child.has_error or child.is_missing)
    return None


# ─── Arena ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TextRun:
    """Raw JSX text between two structural children (byte offsets)."""

    start: int
    end: int


@dataclass(frozen=True)
class ExpressionSlot:
    """A ``{...}`` container among an element's children."""

    node: tree_sitter.Node


ChildSlot = Union[TextRun, ExpressionSlot, int]


@dataclass
class JsxElement:
    index: int
    node: tree_sitter.Node
    parent: int | None
    name: str | None
    children: list[ChildSlot] = field(default_factory=list)
    removed: bool = False

    @property
    def is_fragment(self) -> bool:
        return self.name is None

    @property
    def opening(self) -> tree_sitter.Node:
        """The node carrying the tag name and attributes."""
        if self.node.type == "jsx_self_closing_element":
            return self.node
        return _first_child(self.node, "jsx_opening_element") or self.node


@dataclass(frozen=True)
class ByteEdit:
    start: int
    end: int
    replacement: bytes

    @property
    def is_deletion(self) -> bool:
        return not self.replacement


def _first_child(node: tree_sitter.Node, node_type: str) -> tree_sitter.Node | None:
    for child in node.children:
        if child.type == node_type:
            return child
    return None


def _last_child(node: tree_sitter.Node, node_type: str) -> tree_sitter.Node | None:
    for child in reversed(node.children):
        if child.type == node_type:
            return child
    return None


def _range_key(node: tree_sitter.Node) -> tuple[int, int, str]:
    return node.start_byte, node.end_byte, node.type


class SyntaxTree:
    """One file's parse plus the edits queued against it.

    Owned by a single resolve-and-mutate call; never shared across requests.
    """

    def __init__(self, source: bytes, tree: tree_sitter.Tree, path: str | Path | None = None) -> None:
        self.source = source
        self.tree = tree
        self.path = Path(path) if path else None
        self.root = tree.root_node
        self.elements: list[JsxElement] = []
        self._element_index: dict[tuple[int, int, str], int] = {}
        self._edits: list[ByteEdit] = []
        self._build_arena()

    # -- arena ---------------------------------------------------------------

    def _build_arena(self) -> None:
        for node in self.walk(ELEMENT_TYPES):
            parent = None
            if node.parent is not None and node.parent.type == "jsx_element":
                parent = self._element_index.get(_range_key(node.parent))
            index = len(self.elements)
            self.elements.append(JsxElement(index, node, parent, self._element_name(node)))
            self._element_index[_range_key(node)] = index
        for element in self.elements:
            element.children = self._child_slots(element.node)

    def _element_name(self, node: tree_sitter.Node) -> str | None:
        opening = node if node.type == "jsx_self_closing_element" else _first_child(node, "jsx_opening_element")
        if opening is None:
            return None
        name_node = opening.child_by_field_name("name")
        return self.text(name_node) if name_node is not None else None

    def _child_slots(self, node: tree_sitter.Node) -> list[ChildSlot]:
        if node.type != "jsx_element":
            return []
        opening = _first_child(node, "jsx_opening_element")
        closing = _last_child(node, "jsx_closing_element")
        cursor = opening.end_byte if opening is not None else node.start_byte
        stop = closing.start_byte if closing is not None else node.end_byte
        slots: list[ChildSlot] = []
        for child in node.children:
            if child.type in ELEMENT_TYPES:
                slot: ChildSlot = self._element_index[_range_key(child)]
            elif child.type == "jsx_expression":
                slot = ExpressionSlot(child)
            else:
                continue
            if child.start_byte > cursor:
                slots.append(TextRun(cursor, child.start_byte))
            slots.append(slot)
            cursor = child.end_byte
        if stop > cursor:
            slots.append(TextRun(cursor, stop))
        return slots

    def element_for(self, node: tree_sitter.Node) -> JsxElement | None:
        index = self._element_index.get(_range_key(node))
        return self.elements[index] if index is not None else None

    def live_elements(self) -> Iterator[JsxElement]:
        return (element for element in self.elements if not element.removed)

    def ancestors(self, index: int) -> list[int]:
        """Parent chain of an element, nearest first."""
        chain: list[int] = []
        parent = self.elements[index].parent
        while parent is not None:
            chain.append(parent)
            parent = self.elements[parent].parent
        return chain

    def detach(self, index: int) -> None:
        """Drop an element from its parent's child list and mark it removed."""
        element = self.elements[index]
        element.removed = True
        if element.parent is not None:
            siblings = self.elements[element.parent].children
            self.elements[element.parent].children = [slot for slot in siblings if slot != index]

    # -- reads ---------------------------------------------------------------

    def text(self, node: tree_sitter.Node) -> str:
        return self.source[node.start_byte:node.end_byte].decode("utf-8")

    def slice(self, start: int, end: int) -> str:
        return self.source[start:end].decode("utf-8")

    def walk(self, types: frozenset[str] | set[str] | None = None,
             node: tree_sitter.Node | None = None) -> Iterator[tree_sitter.Node]:
        """Pre-order traversal, optionally filtered by node type."""
        stack = [node if node is not None else self.root]
        while stack:
            current = stack.pop()
            if types is None or current.type in types:
                yield current
            stack.extend(reversed(current.children))

    def attributes(self, element: JsxElement) -> list[tree_sitter.Node]:
        """``jsx_attribute`` nodes and spread containers of an element's opening tag."""
        return [
            child for child in element.opening.named_children
            if child.type in ("jsx_attribute", "jsx_expression")
        ]

    def attribute_name(self, attribute: tree_sitter.Node) -> str | None:
        if attribute.type != "jsx_attribute" or not attribute.named_children:
            return None
        return self.text(attribute.named_children[0])

    def attribute_value(self, attribute: tree_sitter.Node) -> tree_sitter.Node | None:
        if attribute.type != "jsx_attribute" or len(attribute.named_children) < 2:
            return None
        return attribute.named_children[1]

    def find_attribute(self, element: JsxElement, name: str) -> tree_sitter.Node | None:
        for attribute in self.attributes(element):
            if self.attribute_name(attribute) == name:
                return attribute
        return None

    # -- edits ---------------------------------------------------------------

    def replace_range(self, start: int, end: int, text: str) -> None:
        self._edits.append(ByteEdit(start, end, text.encode("utf-8")))

    def insert_at(self, position: int, text: str) -> None:
        self.replace_range(position, position, text)

    def delete_range(self, start: int, end: int) -> None:
        self._edits.append(ByteEdit(start, end, b""))

    @property
    def edits(self) -> list[ByteEdit]:
        return list(self._edits)

    @property
    def modified(self) -> bool:
        return bool(self._edits)


# ─── Parse / serialize / validate ───────────────────────────────────


def parse(source: str | bytes, path: str | Path | None = None) -> SyntaxTree:
    """Parse JSX/TSX source.

    Raises:
        ParseError: If the source contains syntax errors.
    """
    data = source.encode("utf-8") if isinstance(source, str) else source
    tree = _parse_bytes(data, path)
    if tree.root_node.has_error:
        line = _first_error_line(tree.root_node)
        where = f" near line {line}" if line else ""
        raise ParseError(f"Unable to parse {path or 'source'}{where}", str(path) if path else None)
    return SyntaxTree(data, tree, path)


def parse_file(path: str | Path) -> SyntaxTree:
    return parse(Path(path).read_bytes(), path)


def _normalize_edits(edits: list[ByteEdit]) -> list[ByteEdit]:
    """Order edits and drop those swallowed by an enclosing replacement."""
    merged: list[ByteEdit] = []
    for edit in sorted(edits, key=lambda e: (e.start, -e.end)):
        if merged and edit.start < merged[-1].end:
            last = merged[-1]
            if edit.end <= last.end:
                continue
            if last.is_deletion and edit.is_deletion:
                merged[-1] = ByteEdit(last.start, edit.end, b"")
                continue
            raise ValueError(
                f"Overlapping edits at bytes {last.start}-{last.end} and {edit.start}-{edit.end}"
            )
        merged.append(edit)
    return merged


def serialize(tree: SyntaxTree) -> str:
    """Apply the queued edits to the original source."""
    output = bytearray(tree.source)
    for edit in reversed(_normalize_edits(tree.edits)):
        output[edit.start:edit.end] = edit.replacement
    return output.decode("utf-8")


def validate(source: str, path: str | Path | None = None) -> bool:
    """Re-parse candidate output; True when it is free of syntax errors."""
    try:
        tree = _parse_bytes(source.encode("utf-8"), path)
    except ValueError as exc:
        logger.warning("[SyntaxTree] Validation parse failed for %s: %s", path, exc)
        return False
    return not tree.root_node.has_error


def format_source(source: str, path: str | Path) -> str:
    """Run the configured formatter, falling back to the input on any failure."""
    command = settings.FORMAT_COMMAND
    if not command:
        return source
    argv = [part.replace("{path}", str(path)) for part in shlex.split(command)]
    try:
        completed = subprocess.run(
            argv,
            input=source.encode("utf-8"),
            capture_output=True,
            timeout=settings.FORMAT_TIMEOUT_SECONDS,
            check=True,
        )
        formatted = completed.stdout.decode("utf-8")
    except (OSError, subprocess.SubprocessError, UnicodeDecodeError) as exc:
        logger.warning("[SyntaxTree] Formatter failed for %s, keeping unformatted output: %s", path, exc)
        return source
    if not formatted.strip():
        logger.warning("[SyntaxTree] Formatter returned no output for %s", path)
        return source
    return formatted
