"""Text normalization helpers shared by every matcher.

All equality and containment checks in the editor go through
:func:`normalize` so whitespace and letter case never cause false negatives.
"""

import re

_WHITESPACE = re.compile(r"\s+")


def normalize(text: str | None) -> str:
    """Collapse whitespace runs to one space, trim, and lowercase."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text).strip().lower()


def sanitize_class_tokens(class_name: str | None) -> list[str]:
    """Split a class attribute value into its non-empty tokens."""
    if not class_name:
        return []
    return [token for token in _WHITESPACE.split(class_name.strip()) if token]


def class_token_set(class_name: str | None) -> set[str]:
    """Return the normalized token set used for class comparisons."""
    return {token.lower() for token in sanitize_class_tokens(class_name)}


def has_class_overlap(candidate: str | None, target: str | None) -> bool:
    """True when the two class strings share at least one token."""
    target_tokens = class_token_set(target)
    if not target_tokens:
        return False
    return bool(class_token_set(candidate) & target_tokens)


def text_related(a: str | None, b: str | None) -> bool:
    """True when either normalized text contains the other."""
    left, right = normalize(a), normalize(b)
    if not left or not right:
        return False
    return left == right or left in right or right in left
