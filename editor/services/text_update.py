"""Replace the literal text of a clicked element."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from candidates import text_or_class_predicate
from edit_errors import AmbiguousMatchError, NoMatchError
from mutations import replace_text_child, set_attribute_string
from services.base import EditService, ElementMatchContext
from services.payloads import TextUpdatePayload

logger = logging.getLogger(__name__)


class TextUpdateService(EditService):
    service_name = "TextUpdate"

    def update_text(self, payload: TextUpdatePayload) -> dict[str, Any]:
        return self.run(lambda: self._update_text(payload))

    def _update_text(self, payload: TextUpdatePayload) -> dict[str, Any]:
        viewed = self.viewed_file(payload.source_file)
        lookup = payload.lookup_text
        descriptor = payload.descriptor(identifier_text=payload.old_text)

        ambiguity: AmbiguousMatchError | None = None
        try:
            context = self.locate(descriptor, viewed, text_or_class_predicate(lookup, payload.class_name))
        except AmbiguousMatchError as exc:
            context, ambiguity = None, exc

        if context is not None and replace_text_child(
            context.tree, context.element, payload.old_text, payload.new_text
        ):
            self.gate(context, payload.force_global)
            self.save(context.tree, context.file_path)
            return self._result(payload, context.file_path, context.match_kind)

        # The element renders a prop; change the literal where the component is used.
        result = self._update_through_usage(payload, context, viewed, lookup)
        if result is not None:
            return result
        if ambiguity is not None:
            raise ambiguity
        raise NoMatchError(f'Text "{lookup}" not found in <{payload.tag}> elements')

    def _update_through_usage(
        self,
        payload: TextUpdatePayload,
        context: ElementMatchContext | None,
        viewed: Path,
        lookup: str,
    ) -> dict[str, Any] | None:
        search_path = context.file_path if context is not None else viewed
        search_tree = context.tree if context is not None else self.load(viewed)
        usage = self.find_usage(search_tree, search_path, lookup)
        if usage is None or usage.file_path is None:
            return None

        tree = search_tree if usage.file_path == search_path else self.load(usage.file_path)
        if tree is None:
            return None
        element = tree.elements[usage.element_index]
        if usage.matched_prop == "children":
            updated = replace_text_child(tree, element, lookup, payload.new_text)
        else:
            attribute = tree.find_attribute(element, usage.matched_prop or "")
            updated = attribute is not None and set_attribute_string(tree, attribute, payload.new_text)
        if not updated:
            return None

        logger.info(
            "[TextUpdate] Updating %s of <%s> usage in %s",
            usage.matched_prop, usage.component_name, self.relative(usage.file_path),
        )
        self.save(tree, usage.file_path)
        result = self._result(payload, usage.file_path, "usage")
        result["componentName"] = usage.component_name
        return result

    def _result(self, payload: TextUpdatePayload, path: Path, match_kind: str) -> dict[str, Any]:
        relative = self.relative(path)
        return {
            "success": True,
            "message": f"Updated text in <{payload.tag}>",
            "filePath": relative,
            "updatedFile": relative,
            "matchKind": match_kind,
        }
