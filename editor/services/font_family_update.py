from class_tokens import TokenEdit, is_font_family_token
from services.payloads import FontFamilyUpdatePayload
from services.style_update import StyleUpdateService


class FontFamilyUpdateService(StyleUpdateService):
    service_name = "FontFamilyUpdate"
    description = "font family"

    def token_edits(self, payload: FontFamilyUpdatePayload) -> list[TokenEdit]:
        return [TokenEdit.for_axis("fontFamily", payload.new_font, is_font_family_token, payload.old_font)]

    def additional_token(self, payload: FontFamilyUpdatePayload) -> str | None:
        return payload.old_font

    def update_font_family(self, payload: FontFamilyUpdatePayload) -> dict:
        return self.apply(payload)
