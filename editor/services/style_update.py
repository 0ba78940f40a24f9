"""Shared flow for class-token style edits (color, font size, font family)."""

from __future__ import annotations

import logging
from typing import Any

from candidates import prop_reference_predicate, text_or_class_predicate
from class_tokens import TokenEdit
from edit_errors import AmbiguousMatchError, EditError, NoMatchError
from element_matcher import find_local_match
from jsx_values import has_inline_class
from mutations import edit_class_tokens
from services.base import EditService, ElementMatchContext, UsageMatch
from services.payloads import ElementPayload

logger = logging.getLogger(__name__)


class StyleUpdateService(EditService):
    """Subclasses describe their token edits; this class finds and applies them."""

    service_name = "StyleUpdate"
    description = "style"

    def token_edits(self, payload: ElementPayload) -> list[TokenEdit]:
        raise NotImplementedError

    def additional_token(self, payload: ElementPayload) -> str | None:
        """Old class token that pinpoints the restyled element, if the request has one."""
        return None

    def apply(self, payload: ElementPayload) -> dict[str, Any]:
        return self.run(lambda: self._apply(payload))

    def _apply(self, payload: ElementPayload) -> dict[str, Any]:
        edits = self.token_edits(payload)
        viewed = self.viewed_file(payload.source_file)
        lookup = payload.lookup_text
        predicate = text_or_class_predicate(lookup, payload.class_name, self.additional_token(payload))

        ambiguity: AmbiguousMatchError | None = None
        try:
            context = self.locate(payload.descriptor(), viewed, predicate)
        except AmbiguousMatchError as exc:
            context, ambiguity = None, exc

        if context is not None:
            self.gate(context, payload.force_global)
            return self._edit(context, edits, payload)

        usage = self.find_usage(self.load(viewed), viewed, lookup) if lookup else None
        if usage is not None and usage.file_path is not None:
            component_context = self._component_context(usage, payload)
            if component_context is not None:
                if not payload.force_global:
                    warning = self.risk.check(
                        usage.file_path,
                        usage.component_name,
                        usage.has_inline_class_override,
                        usage_prop_names=usage.prop_names,
                    )
                    if warning is not None:
                        raise warning
                return self._edit(component_context, edits, payload)

        if ambiguity is not None:
            raise ambiguity
        raise NoMatchError(f'No <{payload.tag}> element matching "{lookup or payload.class_name}" was found')

    def _component_context(self, usage: UsageMatch, payload: ElementPayload) -> ElementMatchContext | None:
        """The element inside the component's file that renders the usage's prop."""
        component_file = self.component_file_for(usage.file_path, usage.component_name)
        if component_file is None:
            return None
        tree = self.load(component_file)
        if tree is None:
            return None
        props = [usage.matched_prop] if usage.matched_prop else usage.prop_names
        try:
            result = find_local_match(tree, payload.tag, prop_reference_predicate(props),
                                      payload.class_name, payload.lookup_text)
        except AmbiguousMatchError as exc:
            logger.info("[%s] %s", self.service_name, exc.message)
            return None
        if result is None:
            return None
        return ElementMatchContext(
            file_path=component_file,
            tree=tree,
            element=result.element,
            element_name=result.element.name or payload.tag,
            has_inline_class=has_inline_class(tree, result.element),
            usage_prop_names=usage.prop_names,
            match_kind="component",
            score=result.score,
            reason=result.reason,
        )

    def _edit(self, context: ElementMatchContext, edits: list[TokenEdit], payload: ElementPayload) -> dict[str, Any]:
        outcome = edit_class_tokens(context.tree, context.element, edits)
        relative = self.relative(context.file_path)
        if not outcome.changed and outcome.unchanged_axes:
            raise EditError(
                f"className on <{context.element_name}> in {relative} is computed at runtime; "
                f"no change made to {', '.join(outcome.unchanged_axes)}",
                relative,
            )

        saved = self.save(context.tree, context.file_path) if outcome.changed else False
        result: dict[str, Any] = {
            "success": True,
            "message": (
                f"Updated {self.description} on <{context.element_name}>" if saved
                else f"{self.description.capitalize()} already set on <{context.element_name}>"
            ),
            "filePath": relative,
            "matchKind": context.match_kind,
        }
        if saved:
            result["updatedFile"] = relative
        if outcome.unchanged_axes:
            result["details"] = f"No change made to: {', '.join(outcome.unchanged_axes)}"
        return result
