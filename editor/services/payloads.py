"""Request payloads for the edit services.

Fields accept the overlay's camelCase names (``sourceFile``, ``oldText``,
``forceGlobal`` ...) as well as their snake_case attribute names.
"""

from __future__ import annotations

import re

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from candidates import ElementDescriptor

_CLASS_TOKEN = re.compile(r"^[^\s\"'`{}<>]+$")


def _check_class_token(value: str | None) -> str | None:
    if value is None:
        return value
    value = value.strip()
    if not value:
        return None
    if not _CLASS_TOKEN.match(value):
        raise ValueError(f"Invalid class token: {value!r}")
    return value


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ElementPayload(_Payload):
    source_file: str = Field(
        "",
        validation_alias=AliasChoices("sourceFile", "file", "source_file"),
        description="Viewed page as a URL path or a file path",
    )
    tag: str = Field(..., min_length=1, max_length=100)
    class_name: str = ""
    text_content: str | None = None
    element_identifier: str = ""
    owner_component_name: str | None = None
    owner_file_path: str | None = None
    force_global: bool = False

    @property
    def lookup_text(self) -> str:
        return self.text_content or self.element_identifier

    def descriptor(self, identifier_text: str | None = None) -> ElementDescriptor:
        return ElementDescriptor(
            tag=self.tag,
            identifier_text=identifier_text if identifier_text is not None else self.element_identifier,
            text_content=self.text_content,
            class_name=self.class_name,
            owner_component_name=self.owner_component_name,
            owner_file_path=self.owner_file_path,
        )


class TextUpdatePayload(ElementPayload):
    old_text: str = Field(..., min_length=1)
    new_text: str

    @property
    def lookup_text(self) -> str:
        return self.text_content or self.old_text


class FontSizeUpdatePayload(ElementPayload):
    old_size: str | None = None
    new_size: str = Field(..., min_length=1)

    @field_validator("old_size", "new_size")
    @classmethod
    def validate_tokens(cls, v: str | None) -> str | None:
        return _check_class_token(v)


class FontFamilyUpdatePayload(ElementPayload):
    old_font: str | None = None
    new_font: str = Field(..., min_length=1)

    @field_validator("old_font", "new_font")
    @classmethod
    def validate_tokens(cls, v: str | None) -> str | None:
        return _check_class_token(v)


class ColorPair(_Payload):
    old: str | None = None
    new: str = Field(..., min_length=1)

    @field_validator("old", "new")
    @classmethod
    def validate_tokens(cls, v: str | None) -> str | None:
        return _check_class_token(v)


class ColorUpdatePayload(ElementPayload):
    text_color: ColorPair | None = None
    background_color: ColorPair | None = None
    hover_background_color: ColorPair | None = None

    @model_validator(mode="after")
    def require_a_color(self) -> "ColorUpdatePayload":
        if not (self.text_color or self.background_color or self.hover_background_color):
            raise ValueError("At least one of textColor, backgroundColor, hoverBackgroundColor is required")
        return self


class DeleteElementPayload(_Payload):
    source_file: str = Field(..., min_length=1, validation_alias=AliasChoices("sourceFile", "file", "source_file"))
    component_name: str = Field(..., min_length=1, description="Tag or component name of the clicked element")
    element_identifier: str = Field(..., min_length=1)
    element_tag: str | None = None
    class_name: str = ""
    text_content: str | None = None
    owner_component_name: str | None = None
    owner_file_path: str | None = None

    @property
    def tag(self) -> str:
        return self.element_tag or self.component_name

    def descriptor(self) -> ElementDescriptor:
        return ElementDescriptor(
            tag=self.tag,
            identifier_text=self.element_identifier,
            text_content=self.text_content,
            class_name=self.class_name,
            owner_component_name=self.owner_component_name,
            owner_file_path=self.owner_file_path,
        )
