from text_utils import (
    class_token_set,
    has_class_overlap,
    normalize,
    sanitize_class_tokens,
    text_related,
)


class TestNormalize:
    def test_collapses_whitespace_and_lowercases(self):
        assert normalize("  Hello \n\t World  ") == "hello world"

    def test_none_and_empty(self):
        assert normalize(None) == ""
        assert normalize("   ") == ""

    def test_idempotent(self):
        once = normalize(" Mixed   CASE\ntext ")
        assert normalize(once) == once


class TestClassTokens:
    def test_splits_on_any_whitespace(self):
        assert sanitize_class_tokens(" px-2\n  py-1 \tfont-bold ") == ["px-2", "py-1", "font-bold"]

    def test_empty_class(self):
        assert sanitize_class_tokens(None) == []
        assert sanitize_class_tokens("") == []

    def test_token_set_is_case_insensitive(self):
        assert class_token_set("Card card CARD") == {"card"}

    def test_overlap(self):
        assert has_class_overlap("px-2 text-sm", "text-sm font-bold")
        assert not has_class_overlap("px-2", "text-sm")

    def test_overlap_with_empty_target_is_false(self):
        assert not has_class_overlap("px-2", "")
        assert not has_class_overlap("px-2", None)


class TestTextRelated:
    def test_equal_and_containment(self):
        assert text_related("Buy now", "buy  NOW")
        assert text_related("Buy now today", "buy now")
        assert text_related("now", "Buy now")

    def test_unrelated_or_empty(self):
        assert not text_related("Pricing", "Contact")
        assert not text_related("", "anything")
