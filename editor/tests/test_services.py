from unittest.mock import patch

import pytest

from action_history import ActionHistory
from services.color_update import ColorUpdateService
from services.font_family_update import FontFamilyUpdateService
from services.font_size_update import FontSizeUpdateService
from services.payloads import (
    ColorUpdatePayload,
    DeleteElementPayload,
    FontFamilyUpdatePayload,
    FontSizeUpdatePayload,
    TextUpdatePayload,
)
from services.text_update import TextUpdateService
from services.visual_delete import VisualDeleteService

WELCOME_PAGE = """
export default function Page() {
  return (
    <main>
      <h1 className="text-4xl font-bold">Welcome</h1>
      <p className="font-serif text-gray-600">Intro</p>
      <button className="bg-blue-500 text-white hover:bg-blue-600">Buy</button>
    </main>
  );
}
"""

CARD_PAGE = """
import Card from "./Card";

export default function Page() {
  return (
    <main>
      <Card title="Plans" />
      <p>Other</p>
    </main>
  );
}
"""

CARD = """
export default function Card({ title, variant }) {
  return (
    <div className={variant === "primary" ? "bg-blue-500" : "bg-white"}>
      <h3 className="text-lg">{title}</h3>
    </div>
  );
}
"""

LIST_PAGE = """
const items = ["Alpha", "Beta"];

export default function Page() {
  return (
    <ul>
      {items.map((item) => (
        <li key={item}>{item}</li>
      ))}
    </ul>
  );
}
"""


@pytest.fixture()
def editor(make_project):
    """Build a project and return (root, history, services by name)."""

    def build(files):
        root = make_project(files)
        history = ActionHistory(root)
        services = {
            "text": TextUpdateService(root, history),
            "color": ColorUpdateService(root, history),
            "font_size": FontSizeUpdateService(root, history),
            "font_family": FontFamilyUpdateService(root, history),
            "delete": VisualDeleteService(root, history),
        }
        return root, history, services

    return build


class TestPayloads:
    def test_accepts_camel_case_and_file_alias(self):
        payload = TextUpdatePayload.model_validate({
            "file": "/", "tag": "h1", "oldText": "Welcome", "newText": "Hello", "forceGlobal": True,
        })
        assert payload.source_file == "/"
        assert payload.force_global is True
        assert payload.lookup_text == "Welcome"

    def test_color_requires_an_axis(self):
        with pytest.raises(ValueError):
            ColorUpdatePayload.model_validate({"sourceFile": "/", "tag": "p"})

    def test_rejects_class_token_with_quotes(self):
        with pytest.raises(ValueError):
            FontSizeUpdatePayload.model_validate({"sourceFile": "/", "tag": "p", "newSize": 'text-lg"'})

    def test_delete_tag_prefers_element_tag(self):
        payload = DeleteElementPayload.model_validate({
            "sourceFile": "/", "componentName": "Card", "elementIdentifier": "Plans", "elementTag": "h3",
        })
        assert payload.tag == "h3"


class TestTextUpdate:
    def test_local_replace_and_undo(self, editor):
        root, history, services = editor({"app/page.tsx": WELCOME_PAGE})
        page = root / "app/page.tsx"
        original = page.read_text()
        payload = TextUpdatePayload.model_validate({
            "sourceFile": "/", "tag": "h1", "className": "text-4xl font-bold",
            "oldText": "Welcome", "newText": "Hello there",
        })

        result = history.run_action("TextUpdate", "edit", lambda: services["text"].update_text(payload))

        assert result["success"] is True
        assert result["matchKind"] == "local"
        assert result["updatedFile"] == "app/page.tsx"
        assert '<h1 className="text-4xl font-bold">Hello there</h1>' in page.read_text()

        assert history.undo_last_action()["success"] is True
        assert page.read_text() == original

    def test_ambiguous_match_fails(self, editor):
        root, _, services = editor({
            "app/page.tsx": """
                export default function Page() {
                  return (
                    <div>
                      <p className="text-sm">Info</p>
                      <p className="text-sm">Info</p>
                    </div>
                  );
                }
            """,
        })
        before = (root / "app/page.tsx").read_text()
        payload = TextUpdatePayload.model_validate({
            "sourceFile": "/", "tag": "p", "className": "text-sm", "oldText": "Info", "newText": "Details",
        })

        result = services["text"].update_text(payload)

        assert result["success"] is False
        assert "match equally well" in result["error"]
        assert (root / "app/page.tsx").read_text() == before

    def test_prop_driven_text_updates_usage_site(self, editor):
        root, _, services = editor({"app/page.tsx": CARD_PAGE, "app/Card.tsx": CARD})
        card_before = (root / "app/Card.tsx").read_text()
        payload = TextUpdatePayload.model_validate({
            "sourceFile": "/", "tag": "h3", "className": "text-lg", "oldText": "Plans", "newText": "Pricing",
            "ownerComponentName": "Card",
        })

        result = services["text"].update_text(payload)

        assert result["success"] is True
        assert result["matchKind"] == "usage"
        assert result["componentName"] == "Card"
        assert '<Card title="Pricing" />' in (root / "app/page.tsx").read_text()
        assert (root / "app/Card.tsx").read_text() == card_before

    def test_text_not_found(self, editor):
        _, _, services = editor({"app/page.tsx": WELCOME_PAGE})
        payload = TextUpdatePayload.model_validate({
            "sourceFile": "/", "tag": "h2", "oldText": "Missing", "newText": "x",
        })
        result = services["text"].update_text(payload)
        assert result == {"success": False, "error": 'Text "Missing" not found in <h2> elements'}

    def test_invalid_output_is_not_written(self, editor):
        root, history, services = editor({"app/page.tsx": WELCOME_PAGE})
        before = (root / "app/page.tsx").read_text()
        payload = TextUpdatePayload.model_validate({
            "sourceFile": "/", "tag": "h1", "oldText": "Welcome", "newText": "Hello",
        })

        with patch("services.base.validate", return_value=False):
            result = history.run_action("TextUpdate", "edit", lambda: services["text"].update_text(payload))

        assert result["success"] is False
        assert "invalid source" in result["error"]
        assert (root / "app/page.tsx").read_text() == before
        assert history.get_last_action_summary() is None

    def test_repeating_an_edit_fails_cleanly(self, editor):
        root, history, services = editor({"app/page.tsx": WELCOME_PAGE})
        page = root / "app/page.tsx"
        payload = TextUpdatePayload.model_validate({
            "sourceFile": "/", "tag": "h1", "oldText": "Welcome", "newText": "Hello",
        })

        first = history.run_action("TextUpdate", "edit", lambda: services["text"].update_text(payload))
        after_first = page.read_bytes()
        second = history.run_action("TextUpdate", "edit", lambda: services["text"].update_text(payload))

        assert first["success"] is True
        assert second == {"success": False, "error": 'Text "Welcome" not found in <h1> elements'}
        assert page.read_bytes() == after_first
        assert page.read_text().count("Hello") == 1

    def test_crlf_file_is_restored_byte_for_byte(self, editor):
        root, history, services = editor({"app/page.tsx": WELCOME_PAGE})
        page = root / "app/page.tsx"
        original = page.read_bytes().replace(b"\n", b"\r\n")
        page.write_bytes(original)
        payload = TextUpdatePayload.model_validate({
            "sourceFile": "/", "tag": "h1", "oldText": "Welcome", "newText": "Hello",
        })

        result = history.run_action("TextUpdate", "edit", lambda: services["text"].update_text(payload))

        assert result["success"] is True
        edited = page.read_bytes()
        assert b"Hello</h1>\r\n" in edited
        assert edited.count(b"\r\n") == original.count(b"\r\n")

        assert history.undo_last_action()["success"] is True
        assert page.read_bytes() == original


class TestStyleUpdates:
    def test_font_size_in_shared_component_warns(self, editor):
        root, _, services = editor({"app/page.tsx": CARD_PAGE, "app/Card.tsx": CARD})
        card_before = (root / "app/Card.tsx").read_text()
        payload = FontSizeUpdatePayload.model_validate({
            "sourceFile": "/", "tag": "h3", "className": "text-lg", "textContent": "Plans",
            "ownerComponentName": "Card", "oldSize": "text-lg", "newSize": "text-2xl",
        })

        result = services["font_size"].update_font_size(payload)

        assert result["warning"] is True
        assert result["success"] is False
        assert "variant-prop" in result["signals"]
        assert (root / "app/Card.tsx").read_text() == card_before

    def test_force_global_edits_component(self, editor):
        root, _, services = editor({"app/page.tsx": CARD_PAGE, "app/Card.tsx": CARD})
        payload = FontSizeUpdatePayload.model_validate({
            "sourceFile": "/", "tag": "h3", "className": "text-lg", "textContent": "Plans",
            "ownerComponentName": "Card", "oldSize": "text-lg", "newSize": "text-2xl", "forceGlobal": True,
        })

        result = services["font_size"].update_font_size(payload)

        assert result["success"] is True
        assert result["matchKind"] == "component"
        assert result["updatedFile"] == "app/Card.tsx"
        assert '<h3 className="text-2xl">{title}</h3>' in (root / "app/Card.tsx").read_text()

    def test_color_axes(self, editor):
        root, _, services = editor({"app/page.tsx": WELCOME_PAGE})
        payload = ColorUpdatePayload.model_validate({
            "sourceFile": "/", "tag": "button", "className": "bg-blue-500 text-white hover:bg-blue-600",
            "textContent": "Buy",
            "textColor": {"old": "text-white", "new": "text-black"},
            "backgroundColor": {"new": "bg-red-500"},
            "hoverBackgroundColor": {"new": "hover:bg-red-600"},
        })

        result = services["color"].update_color(payload)

        assert result["success"] is True
        assert '<button className="bg-red-500 text-black hover:bg-red-600">Buy</button>' in (
            root / "app/page.tsx"
        ).read_text()

    def test_font_family_already_set(self, editor):
        root, _, services = editor({"app/page.tsx": WELCOME_PAGE})
        before = (root / "app/page.tsx").read_text()
        payload = FontFamilyUpdatePayload.model_validate({
            "sourceFile": "/", "tag": "p", "className": "font-serif text-gray-600", "textContent": "Intro",
            "oldFont": "font-serif", "newFont": "font-serif",
        })

        result = services["font_family"].update_font_family(payload)

        assert result["success"] is True
        assert result["message"] == "Font family already set on <p>"
        assert "updatedFile" not in result
        assert (root / "app/page.tsx").read_text() == before

    def test_font_family_replaced(self, editor):
        root, _, services = editor({"app/page.tsx": WELCOME_PAGE})
        payload = FontFamilyUpdatePayload.model_validate({
            "sourceFile": "/", "tag": "p", "className": "font-serif text-gray-600", "textContent": "Intro",
            "newFont": "font-mono",
        })

        result = services["font_family"].update_font_family(payload)

        assert result["success"] is True
        assert '<p className="font-mono text-gray-600">Intro</p>' in (root / "app/page.tsx").read_text()

    def test_dynamic_class_reports_no_change(self, editor):
        root, _, services = editor({
            "app/page.tsx": """
                import styles from "./page.module.css";

                export default function Page() {
                  return <main><h1 className={styles.title}>Welcome</h1></main>;
                }
            """,
        })
        payload = FontSizeUpdatePayload.model_validate({
            "sourceFile": "/", "tag": "h1", "textContent": "Welcome", "newSize": "text-5xl",
        })

        result = services["font_size"].update_font_size(payload)

        assert result["success"] is False
        assert "computed at runtime" in result["error"]


class TestVisualDelete:
    def test_local_element(self, editor):
        root, history, services = editor({"app/page.tsx": WELCOME_PAGE})
        payload = DeleteElementPayload.model_validate({
            "sourceFile": "/", "componentName": "p", "elementIdentifier": "Intro",
            "className": "font-serif text-gray-600",
        })

        result = history.run_action("VisualDelete", "delete", lambda: services["delete"].delete_element(payload))

        assert result["success"] is True
        assert result["matchKind"] == "local"
        content = (root / "app/page.tsx").read_text()
        assert "Intro" not in content
        assert "Welcome" in content
        assert history.undo_last_action()["success"] is True
        assert "Intro" in (root / "app/page.tsx").read_text()

    def test_invalid_output_is_not_written(self, editor):
        root, history, services = editor({"app/page.tsx": WELCOME_PAGE})
        page = root / "app/page.tsx"
        before = page.read_bytes()
        payload = DeleteElementPayload.model_validate({
            "sourceFile": "/", "componentName": "p", "elementIdentifier": "Intro",
        })

        with patch("services.base.validate", return_value=False):
            result = history.run_action(
                "VisualDelete", "delete", lambda: services["delete"].delete_element(payload)
            )

        assert result["success"] is False
        assert "invalid source" in result["error"]
        assert page.read_bytes() == before
        assert history.get_last_action_summary() is None

    def test_data_collection_entry(self, editor):
        root, _, services = editor({"app/page.tsx": LIST_PAGE})
        payload = DeleteElementPayload.model_validate({
            "sourceFile": "/", "componentName": "li", "elementIdentifier": "Alpha", "textContent": "Alpha",
        })

        result = services["delete"].delete_element(payload)

        assert result["success"] is True
        assert result["matchKind"] == "data"
        content = (root / "app/page.tsx").read_text()
        assert 'const items = ["Beta"];' in content
        assert "<li key={item}>{item}</li>" in content

    def test_prop_reference_in_component(self, editor):
        root, _, services = editor({"app/page.tsx": CARD_PAGE, "app/Card.tsx": CARD})
        payload = DeleteElementPayload.model_validate({
            "sourceFile": "/", "componentName": "h3", "elementIdentifier": "Plans",
        })

        result = services["delete"].delete_element(payload)

        assert result["success"] is True
        assert result["matchKind"] == "component"
        assert result["updatedFile"] == "app/Card.tsx"
        assert "<h3" not in (root / "app/Card.tsx").read_text()
        assert '<Card title="Plans" />' in (root / "app/page.tsx").read_text()

    def test_usage_removed_when_component_source_is_missing(self, editor):
        root, _, services = editor({"app/page.tsx": CARD_PAGE})
        payload = DeleteElementPayload.model_validate({
            "sourceFile": "/", "componentName": "h3", "elementIdentifier": "Plans",
        })

        result = services["delete"].delete_element(payload)

        assert result["success"] is True
        assert result["matchKind"] == "usage"
        content = (root / "app/page.tsx").read_text()
        assert "<Card" not in content
        assert "<p>Other</p>" in content

    def test_missing_source_file(self, editor):
        _, _, services = editor({"app/page.tsx": WELCOME_PAGE})
        payload = DeleteElementPayload.model_validate({
            "sourceFile": "/nowhere", "componentName": "p", "elementIdentifier": "Intro",
        })
        result = services["delete"].delete_element(payload)
        assert result["success"] is False
        assert "not found" in result["error"]

    def test_nothing_matches(self, editor):
        _, _, services = editor({"app/page.tsx": WELCOME_PAGE})
        payload = DeleteElementPayload.model_validate({
            "sourceFile": "/", "componentName": "table", "elementIdentifier": "Quarterly results",
        })
        result = services["delete"].delete_element(payload)
        assert result == {
            "success": False,
            "error": 'Element "Quarterly results" not found or could not be deleted',
        }

    def test_ambiguous_data_entries_are_not_deleted(self, editor):
        root, _, services = editor({
            "app/page.tsx": """
                const a = ["Alpha"];
                const b = [{ label: "Alpha" }];

                export default function Page() {
                  return <ul>{a.map((x) => <li key={x}>{x}</li>)}</ul>;
                }
            """,
        })
        before = (root / "app/page.tsx").read_text()
        payload = DeleteElementPayload.model_validate({
            "sourceFile": "/", "componentName": "li", "elementIdentifier": "Alpha",
        })

        result = services["delete"].delete_element(payload)

        assert result["success"] is False
        assert "2 data entries" in result["error"]
        assert (root / "app/page.tsx").read_text() == before
