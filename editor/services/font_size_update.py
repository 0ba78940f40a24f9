from class_tokens import TokenEdit, is_font_size_token
from services.payloads import FontSizeUpdatePayload
from services.style_update import StyleUpdateService


class FontSizeUpdateService(StyleUpdateService):
    service_name = "FontSizeUpdate"
    description = "font size"

    def token_edits(self, payload: FontSizeUpdatePayload) -> list[TokenEdit]:
        return [TokenEdit.for_axis("fontSize", payload.new_size, is_font_size_token, payload.old_size)]

    def additional_token(self, payload: FontSizeUpdatePayload) -> str | None:
        return payload.old_size

    def update_font_size(self, payload: FontSizeUpdatePayload) -> dict:
        return self.apply(payload)
