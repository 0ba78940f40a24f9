"""Delete a clicked element from source.

Strategies run in order and the first that removes something wins:

1. exact identifier/text match, then fuzzy match, in the owner file, the
   file resolved by content, and the viewed page;
2. the element inside the component behind a usage that reads the usage's props;
3. the usage element itself;
4. a matching entry in an array literal of the viewed page.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from candidates import (
    ElementDescriptor,
    Predicate,
    element_predicate,
    fuzzy_element_predicate,
    prop_reference_predicate,
)
from edit_errors import AmbiguousMatchError, NoMatchError
from element_matcher import find_local_match
from mutations import find_collection_entries, remove_collection_entry, remove_element
from services.base import EditService, UsageMatch, same_file
from services.payloads import DeleteElementPayload

logger = logging.getLogger(__name__)


class VisualDeleteService(EditService):
    service_name = "VisualDelete"

    def delete_element(self, payload: DeleteElementPayload) -> dict[str, Any]:
        return self.run(lambda: self._delete(payload))

    def _delete(self, payload: DeleteElementPayload) -> dict[str, Any]:
        viewed = self.viewed_file(payload.source_file)
        if not viewed.is_file():
            raise NoMatchError(f'Source file "{payload.source_file}" not found', str(viewed))

        descriptor = payload.descriptor()
        lookup = descriptor.search_text
        logger.info(
            "[VisualDelete] Deleting <%s> \"%s\" from %s",
            payload.tag, lookup, self.relative(viewed),
        )
        ambiguities: list[AmbiguousMatchError] = []

        files = self._direct_files(descriptor, viewed)
        predicates = (
            ("exact", element_predicate(payload.element_identifier, payload.text_content, payload.class_name)),
            ("fuzzy", fuzzy_element_predicate(payload.element_identifier, payload.text_content, payload.class_name)),
        )
        for label, predicate in predicates:
            for path in files:
                kind = "local" if same_file(path, viewed) else "component"
                if self._remove_match(path, descriptor, predicate, label, ambiguities):
                    return self._result(kind, payload.component_name, path)
            # Several equally good exact matches: a looser pass would only guess
            if ambiguities:
                raise ambiguities[0]

        usage = self.find_usage(self.load(viewed), viewed, lookup) if lookup else None
        if usage is not None and usage.file_path is not None:
            component_file = self._delete_in_component(usage, descriptor, ambiguities)
            if component_file is not None:
                return self._result("component", usage.component_name, component_file)
            if self._delete_usage(usage):
                return self._result("usage", usage.component_name, usage.file_path)

        if self._delete_data_entry(viewed, [payload.element_identifier, payload.text_content or ""]):
            return self._result("data", payload.component_name, viewed)

        if ambiguities:
            raise ambiguities[0]
        logger.warning("[VisualDelete] Unable to locate \"%s\" for deletion", payload.element_identifier)
        raise NoMatchError(f'Element "{payload.element_identifier}" not found or could not be deleted')

    def _direct_files(self, descriptor: ElementDescriptor, viewed: Path) -> list[Path]:
        """Owner file, content-resolved file, and the viewed page, without repeats."""
        files: list[Path] = []
        owner_hints = ElementDescriptor(
            tag=descriptor.tag,
            owner_component_name=descriptor.owner_component_name,
            owner_file_path=descriptor.owner_file_path,
        )
        if descriptor.owner_component_name or descriptor.owner_file_path:
            owner = self.resolver.resolve_file(owner_hints, viewed)
            if owner is not None:
                files.append(owner)
        if descriptor.search_text:
            by_content = self.resolver.find_file_with_text(viewed, descriptor.tag, descriptor.search_text)
            if by_content is not None:
                files.append(by_content)
        files.append(viewed)

        unique: list[Path] = []
        for path in files:
            if not any(same_file(path, seen) for seen in unique):
                unique.append(path)
        return unique

    def _remove_match(
        self,
        path: Path,
        descriptor: ElementDescriptor,
        predicate: Predicate,
        label: str,
        ambiguities: list[AmbiguousMatchError],
    ) -> bool:
        tree = self.load(path)
        if tree is None:
            return False
        try:
            result = find_local_match(tree, descriptor.tag, predicate, descriptor.class_name, descriptor.search_text)
        except AmbiguousMatchError as exc:
            logger.info("[VisualDelete] %s match in %s is ambiguous", label, self.relative(path))
            ambiguities.append(exc)
            return False
        if result is None:
            return False
        remove_element(tree, result.element.index)
        logger.info("[VisualDelete] Removed element via %s match (%s)", label, result.reason)
        return self.save(tree, path)

    def _delete_in_component(
        self, usage: UsageMatch, descriptor: ElementDescriptor, ambiguities: list[AmbiguousMatchError]
    ) -> Path | None:
        """Remove the element in the component file that renders one of the usage's props."""
        component_file = self.component_file_for(usage.file_path, usage.component_name)
        if component_file is None:
            return None
        props = [usage.matched_prop] if usage.matched_prop else usage.prop_names
        if self._remove_match(component_file, descriptor, prop_reference_predicate(props), "prop-reference", ambiguities):
            return component_file
        return None

    def _delete_usage(self, usage: UsageMatch) -> bool:
        tree = self.load(usage.file_path)
        if tree is None or usage.element_index >= len(tree.elements):
            return False
        remove_element(tree, usage.element_index)
        logger.info("[VisualDelete] Removed <%s> usage", usage.component_name)
        return self.save(tree, usage.file_path)

    def _delete_data_entry(self, viewed: Path, texts: list[str]) -> bool:
        """Remove the one array entry whose display value matches the clicked text."""
        tree = self.load(viewed)
        if tree is None:
            return False
        matches = find_collection_entries(tree, texts)
        if not matches:
            return False
        if len(matches) > 1:
            raise AmbiguousMatchError(
                f"Found {len(matches)} data entries matching the element in {self.relative(viewed)}; nothing deleted",
                self.relative(viewed),
            )
        array, position = matches[0]
        remove_collection_entry(tree, array, position)
        logger.info("[VisualDelete] Removed element via data collection pruning")
        return self.save(tree, viewed)

    def _result(self, match_kind: str, name: str, path: Path) -> dict[str, Any]:
        logger.info("[VisualDelete] Delete completed via %s", match_kind)
        relative = self.relative(path)
        return {
            "success": True,
            "message": f'Element "{name}" deleted successfully',
            "matchKind": match_kind,
            "filePath": relative,
            "updatedFile": relative,
        }
