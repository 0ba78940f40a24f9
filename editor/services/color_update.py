"""Color edits on up to three axes: text, background, and hover background."""

from class_tokens import (
    TokenEdit,
    is_background_color_token,
    is_hover_background_token,
    is_text_color_token,
)
from services.payloads import ColorUpdatePayload
from services.style_update import StyleUpdateService

COLOR_AXES = (
    ("textColor", "text_color", is_text_color_token),
    ("backgroundColor", "background_color", is_background_color_token),
    ("hoverBackgroundColor", "hover_background_color", is_hover_background_token),
)


class ColorUpdateService(StyleUpdateService):
    service_name = "ColorUpdate"
    description = "color"

    def token_edits(self, payload: ColorUpdatePayload) -> list[TokenEdit]:
        edits = []
        for axis, field_name, predicate in COLOR_AXES:
            pair = getattr(payload, field_name)
            if pair is not None:
                edits.append(TokenEdit.for_axis(axis, pair.new, predicate, pair.old))
        return edits

    def additional_token(self, payload: ColorUpdatePayload) -> str | None:
        for _, field_name, _ in COLOR_AXES:
            pair = getattr(payload, field_name)
            if pair is not None and pair.old:
                return pair.old
        return None

    def update_color(self, payload: ColorUpdatePayload) -> dict:
        return self.apply(payload)
