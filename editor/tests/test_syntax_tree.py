import subprocess
from unittest.mock import patch

import pytest

import settings
from edit_errors import ParseError
from syntax_tree import (
    ByteEdit,
    ExpressionSlot,
    TextRun,
    _normalize_edits,
    format_source,
    parse,
    parse_file,
    serialize,
    validate,
)

SOURCE = 'const A = () => (<div className="a"><h1>Hello</h1>{value}</div>);\n'


class TestParse:
    def test_builds_element_arena_in_document_order(self):
        tree = parse(SOURCE, "A.tsx")
        assert [element.name for element in tree.elements] == ["div", "h1"]
        div, h1 = tree.elements
        assert div.parent is None
        assert h1.parent == div.index

    def test_child_slots(self):
        tree = parse(SOURCE, "A.tsx")
        div, h1 = tree.elements
        assert div.children[0] == h1.index
        assert isinstance(div.children[1], ExpressionSlot)
        assert len(h1.children) == 1
        run = h1.children[0]
        assert isinstance(run, TextRun)
        assert tree.slice(run.start, run.end) == "Hello"

    def test_fragment_has_no_name(self):
        tree = parse("const a = <><p>x</p></>;\n", "a.tsx")
        fragment = tree.elements[0]
        assert fragment.is_fragment
        assert tree.elements[1].parent == fragment.index

    def test_self_closing_element_is_its_own_opening(self):
        tree = parse('const a = <img src="x.png" />;\n', "a.tsx")
        image = tree.elements[0]
        assert image.opening is image.node
        assert tree.attribute_name(tree.attributes(image)[0]) == "src"

    def test_syntax_error_raises_parse_error(self):
        with pytest.raises(ParseError) as exc_info:
            parse("const a = <div>;\n", "broken.tsx")
        assert "broken.tsx" in exc_info.value.message

    def test_javascript_grammar_for_js_files(self):
        tree = parse("const a = <p>hi</p>;\n", "a.js")
        assert tree.elements[0].name == "p"

    def test_parse_file(self, tmp_path):
        path = tmp_path / "Page.tsx"
        path.write_text(SOURCE)
        tree = parse_file(path)
        assert tree.path == path
        assert len(tree.elements) == 2

    def test_find_attribute(self):
        tree = parse(SOURCE, "A.tsx")
        div = tree.elements[0]
        attribute = tree.find_attribute(div, "className")
        assert attribute is not None
        assert tree.text(tree.attribute_value(attribute)) == '"a"'
        assert tree.find_attribute(div, "id") is None


class TestSerialize:
    def test_no_edits_is_byte_identical(self):
        tree = parse(SOURCE, "A.tsx")
        assert serialize(tree) == SOURCE
        assert not tree.modified

    def test_applies_replacement(self):
        tree = parse(SOURCE, "A.tsx")
        run = tree.elements[1].children[0]
        tree.replace_range(run.start, run.end, "Goodbye")
        assert serialize(tree) == SOURCE.replace("Hello", "Goodbye")

    def test_detach_marks_element_removed(self):
        tree = parse(SOURCE, "A.tsx")
        tree.detach(1)
        assert tree.elements[1].removed
        assert 1 not in tree.elements[0].children
        assert [element.name for element in tree.live_elements()] == ["div"]


class TestNormalizeEdits:
    def test_drops_edit_inside_larger_deletion(self):
        edits = [ByteEdit(5, 8, b"x"), ByteEdit(0, 10, b"")]
        assert _normalize_edits(edits) == [ByteEdit(0, 10, b"")]

    def test_merges_overlapping_deletions(self):
        edits = [ByteEdit(0, 6, b""), ByteEdit(4, 10, b"")]
        assert _normalize_edits(edits) == [ByteEdit(0, 10, b"")]

    def test_overlapping_replacements_are_rejected(self):
        with pytest.raises(ValueError):
            _normalize_edits([ByteEdit(0, 6, b"a"), ByteEdit(4, 10, b"b")])

    def test_orders_by_position(self):
        edits = [ByteEdit(8, 9, b"b"), ByteEdit(1, 2, b"a")]
        assert [edit.start for edit in _normalize_edits(edits)] == [1, 8]


class TestValidate:
    def test_valid_source(self):
        assert validate(SOURCE, "A.tsx")

    def test_invalid_source(self):
        assert not validate("const a = <div>;\n", "A.tsx")


class TestFormatSource:
    def test_without_command_returns_input(self):
        with patch.object(settings, "FORMAT_COMMAND", ""):
            assert format_source(SOURCE, "A.tsx") == SOURCE

    def test_formatter_output_is_used(self):
        completed = subprocess.CompletedProcess(args=[], returncode=0, stdout=b"formatted\n", stderr=b"")
        with patch.object(settings, "FORMAT_COMMAND", "prettier --stdin-filepath {path}"), \
                patch("syntax_tree.subprocess.run", return_value=completed) as run:
            assert format_source(SOURCE, "A.tsx") == "formatted\n"
        assert run.call_args.args[0] == ["prettier", "--stdin-filepath", "A.tsx"]

    def test_formatter_failure_keeps_input(self):
        error = subprocess.CalledProcessError(2, ["prettier"])
        with patch.object(settings, "FORMAT_COMMAND", "prettier"), \
                patch("syntax_tree.subprocess.run", side_effect=error):
            assert format_source(SOURCE, "A.tsx") == SOURCE

    def test_missing_formatter_keeps_input(self):
        with patch.object(settings, "FORMAT_COMMAND", "definitely-not-a-formatter-binary"):
            assert format_source(SOURCE, "A.tsx") == SOURCE
