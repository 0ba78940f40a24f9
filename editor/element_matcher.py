"""Candidate scoring: pick one confident element or report ambiguity."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from candidates import MatchCandidate, Predicate, collect_candidates, possible_tag_names
from edit_errors import AmbiguousMatchError
from syntax_tree import SyntaxTree
from text_utils import class_token_set, normalize

logger = logging.getLogger(__name__)

# ─── Scoring policy ─────────────────────────────────────────────────

# Bonus when the candidate's text contains the target text.
TEXT_MATCH_BONUS = 0.1
# Bonus when a static attribute value equals, contains, or is contained by the target text.
ATTRIBUTE_MATCH_BONUS = 0.3
# Lead the best candidate needs over the runner-up to be accepted outright.
SIGNIFICANT_MARGIN = 0.1
SINGLE_CANDIDATE_SCORE = 1.0


@dataclass
class MatchResult:
    candidate: MatchCandidate
    score: float
    reason: str
    attribute_score: float = 0.0

    @property
    def element(self):
        return self.candidate.element

    @property
    def node(self):
        return self.candidate.node

    @property
    def path(self) -> list[int]:
        return self.candidate.path


def class_similarity(a: str | None, b: str | None) -> float:
    """Jaccard similarity of the two normalized class-token sets."""
    left, right = class_token_set(a), class_token_set(b)
    if not left and not right:
        return 1.0
    if not left or not right:
        return 0.0
    return len(left & right) / len(left | right)


def text_score(candidate: MatchCandidate, target_text: str | None) -> float:
    target = normalize(target_text)
    if target and target in candidate.text:
        return TEXT_MATCH_BONUS
    return 0.0


def attribute_score(candidate: MatchCandidate, target_text: str | None) -> float:
    target = normalize(target_text)
    if not target:
        return 0.0
    for _, value in candidate.attributes:
        value = normalize(value)
        if value and (value == target or target in value or value in target):
            return ATTRIBUTE_MATCH_BONUS
    return 0.0


def find_best_match(
    candidates: list[MatchCandidate],
    target_class: str | None,
    target_text: str | None,
) -> MatchResult | None:
    """Score candidates and return the confident winner, or None.

    Args:
        candidates: Elements that already passed a predicate.
        target_class: Class string of the clicked element.
        target_text: Text of the clicked element.

    Returns:
        The winning MatchResult, or None when there are no candidates, no
        candidate scores above zero, or the top two are too close to call.
    """
    if not candidates:
        return None
    if len(candidates) == 1:
        return MatchResult(candidates[0], SINGLE_CANDIDATE_SCORE, "single candidate")

    scored = []
    for candidate in candidates:
        similarity = class_similarity(candidate.class_name, target_class)
        text_bonus = text_score(candidate, target_text)
        attr_bonus = attribute_score(candidate, target_text)
        reason = f"class={similarity:.2f} text={text_bonus:.1f} attribute={attr_bonus:.1f}"
        scored.append(MatchResult(candidate, similarity + text_bonus + attr_bonus, reason, attr_bonus))

    scored.sort(key=lambda result: result.score, reverse=True)
    best, second = scored[0], scored[1]
    logger.info(
        "[ElementMatcher] %d candidates, best <%s> %.2f (%s), runner-up %.2f",
        len(scored), best.element.name, best.score, best.reason, second.score,
    )

    if best.score <= 0:
        return None
    if best.score > second.score + SIGNIFICANT_MARGIN:
        return best
    if best.attribute_score > second.attribute_score:
        best.reason += "; attribute match breaks tie"
        return best
    return None


def find_local_match(
    tree: SyntaxTree,
    tag: str,
    predicate: Predicate,
    target_class: str | None,
    target_text: str | None,
) -> MatchResult | None:
    """Collect and score candidates for ``tag`` in one tree.

    Returns None when nothing passes the predicate.

    Raises:
        AmbiguousMatchError: Several candidates pass and none is confidently best.
    """
    candidates = collect_candidates(tree, possible_tag_names(tag), predicate)
    if not candidates:
        return None
    result = find_best_match(candidates, target_class, target_text)
    if result is None:
        where = tree.path.name if tree.path else "source"
        raise AmbiguousMatchError(
            f"Found {len(candidates)} <{tag}> elements in {where} that match equally well",
            str(tree.path) if tree.path else None,
        )
    return result
