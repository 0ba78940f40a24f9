"""Static value extraction for JSX children, attributes, and string literals."""

from __future__ import annotations

import html
import re
from dataclasses import dataclass

import tree_sitter

from syntax_tree import ExpressionSlot, JsxElement, SyntaxTree, TextRun
from text_utils import normalize

DYNAMIC_MARKER = "[dynamic]"
CLASS_ATTRIBUTES = ("className", "class")

_JS_ESCAPES = re.compile(r"\\(u\{[0-9a-fA-F]+\}|u[0-9a-fA-F]{4}|x[0-9a-fA-F]{2}|.)", re.DOTALL)
_SIMPLE_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0", "\n": ""}


def _unescape_js(raw: str) -> str:
    def replace(match: re.Match) -> str:
        body = match.group(1)
        if body.startswith("u{"):
            return chr(int(body[2:-1], 16))
        if body.startswith("u") and len(body) == 5:
            return chr(int(body[1:], 16))
        if body.startswith("x") and len(body) == 3:
            return chr(int(body[1:], 16))
        return _SIMPLE_ESCAPES.get(body, body)

    return _JS_ESCAPES.sub(replace, raw)


def has_substitutions(node: tree_sitter.Node) -> bool:
    return any(child.type == "template_substitution" for child in node.named_children)


def string_literal_value(tree: SyntaxTree, node: tree_sitter.Node | None) -> str | None:
    """Cooked value of a JS string or substitution-free template literal."""
    if node is None:
        return None
    if node.type == "string":
        return _unescape_js(tree.text(node)[1:-1])
    if node.type == "template_string" and not has_substitutions(node):
        return _unescape_js(tree.text(node)[1:-1])
    return None


def expression_inner(expression: tree_sitter.Node) -> tree_sitter.Node | None:
    """The wrapped expression of a ``{...}`` container, ignoring comments."""
    for child in expression.named_children:
        if child.type != "comment":
            return child
    return None


def static_expression_value(tree: SyntaxTree, expression: tree_sitter.Node) -> str | None:
    """Rendered text of a ``{...}`` child when it is statically known.

    Empty and comment-only containers render nothing and yield "".
    """
    inner = expression_inner(expression)
    if inner is None:
        return ""
    if inner.type in ("string", "template_string"):
        return string_literal_value(tree, inner)
    if inner.type == "number":
        return tree.text(inner)
    return None


def attribute_string_value(tree: SyntaxTree, value: tree_sitter.Node | None) -> str | None:
    """Static value of an attribute: ``"x"`` or ``{"x"}`` or ``{`x`}``."""
    if value is None:
        return None
    if value.type == "string":
        # JSX attribute strings take HTML entities, not JS escapes
        return html.unescape(tree.text(value)[1:-1])
    if value.type == "jsx_expression":
        return string_literal_value(tree, expression_inner(value))
    return None


def string_attributes(tree: SyntaxTree, element: JsxElement) -> list[tuple[str, str]]:
    """(name, value) for every attribute with a non-empty static string value."""
    pairs: list[tuple[str, str]] = []
    for attribute in tree.attributes(element):
        name = tree.attribute_name(attribute)
        value = attribute_string_value(tree, tree.attribute_value(attribute))
        if name and value:
            pairs.append((name, value))
    return pairs


def class_attribute(tree: SyntaxTree, element: JsxElement) -> tree_sitter.Node | None:
    for name in CLASS_ATTRIBUTES:
        attribute = tree.find_attribute(element, name)
        if attribute is not None:
            return attribute
    return None


def class_name_of(tree: SyntaxTree, element: JsxElement) -> str:
    """Best-effort static class string of an element, used for scoring."""
    attribute = class_attribute(tree, element)
    if attribute is None:
        return ""
    value = tree.attribute_value(attribute)
    static = attribute_string_value(tree, value)
    if static is not None:
        return static
    if value is not None and value.type == "jsx_expression":
        inner = expression_inner(value)
        if inner is not None and inner.type == "template_string":
            return " ".join(
                tree.text(child) for child in inner.named_children if child.type == "string_fragment"
            )
    return ""


def has_inline_class(tree: SyntaxTree, element: JsxElement) -> bool:
    return class_attribute(tree, element) is not None


# ─── Children ───────────────────────────────────────────────────────


@dataclass
class TextInfo:
    text: str
    has_dynamic: bool


def text_run_value(tree: SyntaxTree, run: TextRun) -> str:
    return html.unescape(tree.slice(run.start, run.end))


def element_text(tree: SyntaxTree, element: JsxElement) -> TextInfo:
    """Static text rendered by an element and its descendants."""
    parts: list[str] = []
    has_dynamic = False
    for slot in element.children:
        if isinstance(slot, TextRun):
            parts.append(text_run_value(tree, slot))
        elif isinstance(slot, ExpressionSlot):
            value = static_expression_value(tree, slot.node)
            if value is None:
                has_dynamic = True
            else:
                parts.append(value)
        else:
            nested = element_text(tree, tree.elements[slot])
            parts.append(nested.text)
            has_dynamic = has_dynamic or nested.has_dynamic
    return TextInfo("".join(parts), has_dynamic)


def scoring_text(tree: SyntaxTree, element: JsxElement) -> str:
    """Direct text children, with non-static expressions marked as dynamic."""
    parts: list[str] = []
    for slot in element.children:
        if isinstance(slot, TextRun):
            value = normalize(text_run_value(tree, slot))
            if value:
                parts.append(value)
        elif isinstance(slot, ExpressionSlot):
            value = static_expression_value(tree, slot.node)
            if value is None:
                parts.append(DYNAMIC_MARKER)
            elif value.strip():
                parts.append(value)
    return normalize(" ".join(parts))


def is_meaningful_child(tree: SyntaxTree, slot) -> bool:
    """Non-whitespace text, an element, or an expression that may render something.

    Empty and comment-only containers, and static whitespace such as ``{" "}``,
    render nothing visible.
    """
    if isinstance(slot, TextRun):
        return bool(tree.slice(slot.start, slot.end).strip())
    if isinstance(slot, ExpressionSlot):
        value = static_expression_value(tree, slot.node)
        return value is None or bool(value.strip())
    return True


# ─── Prop references ────────────────────────────────────────────────


def references_props(tree: SyntaxTree, node: tree_sitter.Node, prop_names: set[str]) -> bool:
    """True when an expression reads one of the given props (``title`` or ``props.title``)."""
    if not prop_names:
        return False
    for current in tree.walk({"identifier", "member_expression"}, node):
        if current.type == "identifier":
            if tree.text(current) in prop_names:
                return True
            continue
        obj = current.child_by_field_name("object")
        prop = current.child_by_field_name("property")
        if obj is not None and prop is not None and tree.text(obj) == "props" and tree.text(prop) in prop_names:
            return True
    return False
