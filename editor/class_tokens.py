"""Class-token predicates and in-place edits of class strings.

A class value is edited as a whitespace-separated token list: the first
token accepted by an axis predicate is replaced, later duplicates are
dropped, and the new token is appended when none matched. Separators are
kept as written so multi-line class lists keep their layout.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

# ─── Token predicates ───────────────────────────────────────────────

FONT_SIZE_TOKEN = re.compile(r"^text-(xs|sm|base|lg|xl|[2-9]xl)$")
TEXT_ALIGN_TOKEN = re.compile(r"^text-(left|center|right|justify|start|end)$")
FONT_FAMILY_KEYWORDS = frozenset({"font-sans", "font-serif", "font-mono"})


def is_font_size_token(token: str) -> bool:
    return bool(FONT_SIZE_TOKEN.match(token))


def is_font_family_token(token: str) -> bool:
    return (
        token in FONT_FAMILY_KEYWORDS
        or token.startswith("[font-family:")
        or token.startswith("font-[")
    )


def is_text_color_token(token: str) -> bool:
    if not token.startswith("text-") or token == "text-transparent":
        return False
    return not (is_font_size_token(token) or TEXT_ALIGN_TOKEN.match(token)) and not token.startswith("text-[length:")


def is_background_color_token(token: str) -> bool:
    return token.startswith("bg-") and not token.startswith("bg-gradient")


def is_hover_background_token(token: str) -> bool:
    return token.startswith("hover:bg-")


@dataclass(frozen=True)
class TokenEdit:
    """Replace the token(s) accepted by ``matches`` with ``new_token`` on one axis."""

    axis: str
    new_token: str
    matches: Callable[[str], bool]

    @classmethod
    def for_axis(cls, axis: str, new_token: str, predicate: Callable[[str], bool],
                 old_token: str | None = None) -> "TokenEdit":
        if old_token:
            return cls(axis, new_token, lambda token: token == old_token or predicate(token))
        return cls(axis, new_token, predicate)


# ─── String segments ────────────────────────────────────────────────

_TOKEN = re.compile(r"(\s*)(\S+)")


class Segment:
    """One static piece of a class value (a string body or a template quasi).

    A token glued to a ``${...}`` substitution is partial; ``locked_head``
    and ``locked_tail`` keep such tokens from being matched or removed.
    """

    def __init__(self, text: str, after_substitution: bool = False,
                 before_substitution: bool = False) -> None:
        self.original = text
        self.after_substitution = after_substitution
        self.pairs = [[sep, token] for sep, token in _TOKEN.findall(text)]
        self.trailing = text[len(text.rstrip()):] if self.pairs else text
        self.locked_head = after_substitution and bool(self.pairs) and self.pairs[0][0] == ""
        self.locked_tail = before_substitution and bool(self.pairs) and self.trailing == ""

    def editable(self, position: int) -> bool:
        if position == 0 and self.locked_head:
            return False
        if position == len(self.pairs) - 1 and self.locked_tail:
            return False
        return True

    def render(self) -> str:
        return "".join(sep + token for sep, token in self.pairs) + self.trailing

    @property
    def changed(self) -> bool:
        return self.render() != self.original


def apply_token_edit(segments: list[Segment], edit: TokenEdit, append_to: Segment | None) -> bool:
    """Apply one axis edit across segments; returns True when the text changed.

    ``append_to`` receives the new token when no segment holds a matching
    token; pass None to leave the value untouched in that case.
    """
    found = False
    changed = False
    for segment in segments:
        keep = []
        first_sep = segment.pairs[0][0] if segment.pairs else ""
        for position, pair in enumerate(segment.pairs):
            sep, token = pair
            if not segment.editable(position) or not edit.matches(token):
                keep.append(pair)
                continue
            if not found:
                found = True
                if token != edit.new_token:
                    pair[1] = edit.new_token
                    changed = True
                keep.append(pair)
            else:
                changed = True
        if len(keep) != len(segment.pairs):
            if keep and keep[0] is not segment.pairs[0]:
                keep[0][0] = first_sep
            segment.pairs = keep
    if found:
        return changed
    if append_to is None:
        return False
    _append(append_to, edit.new_token)
    return True


def _append(segment: Segment, token: str) -> None:
    if segment.pairs:
        segment.pairs.append([" ", token])
    elif segment.trailing:
        segment.pairs = [[segment.trailing, token]]
        segment.trailing = ""
    else:
        segment.pairs = [[" " if segment.after_substitution else "", token]]



def edit_class_string(value: str, edits: list[TokenEdit]) -> tuple[str, bool]:
    """Edit a plain class string; returns (new_value, changed)."""
    segment = Segment(value)
    changed = False
    for edit in edits:
        changed = apply_token_edit([segment], edit, segment) or changed
    return segment.render(), changed
