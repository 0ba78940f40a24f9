"""Locate the source file that rendered a clicked element.

Two entry points:

- :meth:`FileResolver.resolve_source_path` turns the page the user is
  viewing (a URL path or file path) into a file on disk.
- :meth:`FileResolver.resolve_file` walks the fallback chain: owner file
  hint, owner component import, literal-text search (strict, then
  dynamic-tolerant), and finally a component-name file lookup.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Iterator

import settings
from candidates import (
    ElementDescriptor,
    Predicate,
    dynamic_content_predicate,
    possible_tag_names,
    strict_text_predicate,
)
from edit_errors import ParseError
from file_utils import is_within
from mtime_cache import MtimeCache
from syntax_tree import SyntaxTree, parse_file

logger = logging.getLogger(__name__)

PAGE_ROUTE_TEMPLATES = (
    "src/app/{route}/page.tsx",
    "app/{route}/page.tsx",
    "src/app/{route}.tsx",
    "app/{route}.tsx",
    "src/pages/{route}.tsx",
    "pages/{route}.tsx",
    "src/{route}.tsx",
    "{route}.tsx",
    "{route}",
)
ROOT_PAGE_CANDIDATES = ("app/page.tsx", "src/app/page.tsx")
FILE_PATH_PREFIXES = ("", "src", "app", "src/app")


class FileResolver:
    """Project-aware file lookups for one project root."""

    def __init__(
        self,
        project_root: str | Path,
        search_directories: Iterable[str] = settings.SEARCH_DIRECTORIES,
        skip_directories: Iterable[str] = settings.SKIP_DIRECTORIES,
    ) -> None:
        self.project_root = Path(project_root).resolve()
        self.search_directories = tuple(search_directories)
        self.skip_directories = frozenset(skip_directories)
        self._component_cache = MtimeCache()

    # -- viewed page ---------------------------------------------------------

    def resolve_source_path(self, source_file: str | None) -> Path:
        """Map the viewed page to a file path.

        Accepts "/" or "", an absolute file path, a project-relative file
        path, or a URL route such as "/products/list".
        """
        root = self.project_root
        raw = (source_file or "").strip()
        if raw in ("", "/"):
            for candidate in ROOT_PAGE_CANDIDATES:
                if (root / candidate).is_file():
                    return root / candidate
            return root / ROOT_PAGE_CANDIDATES[0]

        as_path = Path(raw)
        if as_path.is_absolute() and as_path.is_file():
            return as_path.resolve()

        route = raw.strip("/")
        if Path(route).suffix:
            for prefix in FILE_PATH_PREFIXES:
                candidate = root / prefix / route if prefix else root / route
                if candidate.is_file():
                    return candidate
            return root / route

        for template in PAGE_ROUTE_TEMPLATES:
            candidate = root / template.format(route=route)
            if candidate.is_file():
                return candidate
        return root / PAGE_ROUTE_TEMPLATES[0].format(route=route)

    # -- fallback chain ------------------------------------------------------

    def resolve_file(self, descriptor: ElementDescriptor, viewed_file: Path) -> Path | None:
        """Find the file most likely to contain the descriptor's element."""
        if descriptor.owner_file_path:
            owner = self._owner_path(descriptor.owner_file_path)
            if owner is not None:
                logger.info("[FileResolver] Using owner file hint %s", owner)
                return owner

        if descriptor.owner_component_name:
            imported = self.resolve_component_import(viewed_file, descriptor.owner_component_name)
            if imported is not None:
                logger.info(
                    "[FileResolver] Resolved <%s> through imports to %s",
                    descriptor.owner_component_name, imported,
                )
                return imported

        text = descriptor.search_text
        if text:
            found = self.find_file_with_text(viewed_file, descriptor.tag, text)
            if found is not None:
                return found

        if descriptor.owner_component_name:
            by_name = self.find_component_file(descriptor.owner_component_name)
            if by_name is not None:
                logger.info(
                    "[FileResolver] Resolved <%s> by file name to %s",
                    descriptor.owner_component_name, by_name,
                )
                return by_name
        return None

    def _owner_path(self, owner_file_path: str) -> Path | None:
        candidate = Path(owner_file_path)
        if not candidate.is_absolute():
            candidate = self.project_root / candidate
        if not candidate.is_file():
            return None
        if not is_within(self.project_root, candidate):
            logger.warning("[FileResolver] Ignoring owner file outside project: %s", owner_file_path)
            return None
        return candidate.resolve()

    # -- text search ---------------------------------------------------------

    def find_file_with_text(self, viewed_file: Path, tag: str, text: str) -> Path | None:
        """Strict search (viewed file, then project) before the dynamic-tolerant pass."""
        for label, predicate in (
            ("strict", strict_text_predicate(text)),
            ("dynamic", dynamic_content_predicate()),
        ):
            if self.file_contains_element(viewed_file, tag, predicate):
                logger.info("[FileResolver] %s text match in viewed file %s", label, viewed_file)
                return viewed_file
            found = self.search_project(tag, predicate, exclude=viewed_file)
            if found is not None:
                logger.info("[FileResolver] %s text match in %s", label, found)
                return found
        return None

    def file_contains_element(self, path: Path, tag: str, predicate: Predicate) -> bool:
        tree = self.load_tree(path)
        if tree is None:
            return False
        names = set(possible_tag_names(tag))
        return any(
            element.name in names and predicate(tree, element)
            for element in tree.live_elements()
        )

    def search_project(self, tag: str, predicate: Predicate, exclude: Path | None = None) -> Path | None:
        excluded = exclude.resolve() if exclude is not None else None
        for path in self.iter_source_files():
            if excluded is not None and path.resolve() == excluded:
                continue
            if self.file_contains_element(path, tag, predicate):
                return path
        return None

    def iter_source_files(
        self, extensions: Iterable[str] = settings.SEARCHABLE_EXTENSIONS
    ) -> Iterator[Path]:
        """Source files under the search directories, skipping build and VCS folders.

        Falls back to the whole project root when no search directory exists.
        """
        wanted = tuple(extensions)
        bases = [self.project_root / name for name in self.search_directories]
        bases = [base for base in bases if base.is_dir()] or [self.project_root]
        seen: set[Path] = set()
        for base in bases:
            for dirpath, dirnames, filenames in os.walk(base):
                dirnames[:] = sorted(d for d in dirnames if d not in self.skip_directories)
                for filename in sorted(filenames):
                    if not filename.endswith(wanted):
                        continue
                    path = Path(dirpath) / filename
                    if path not in seen:
                        seen.add(path)
                        yield path

    def load_tree(self, path: Path) -> SyntaxTree | None:
        """Parse a file, treating unreadable or malformed files as unmatchable."""
        try:
            return parse_file(path)
        except ParseError as exc:
            logger.warning("[FileResolver] Skipping unparseable file: %s", exc)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("[FileResolver] Skipping unreadable file %s: %s", path, exc)
        return None

    # -- component resolution ------------------------------------------------

    def resolve_component_import(self, source_file: Path, component_name: str) -> Path | None:
        """Follow the import binding for ``component_name`` in ``source_file``.

        Cached per (source file, component) until the source file changes.
        """
        if not component_name or not Path(source_file).is_file():
            return None
        key = (str(source_file), component_name)
        hit, cached = self._component_cache.lookup(key, source_file)
        if hit:
            return cached

        resolved = None
        tree = self.load_tree(Path(source_file))
        if tree is not None:
            specifier = import_specifier_for(tree, component_name)
            if specifier is not None:
                resolved = self.resolve_module_specifier(Path(source_file), specifier)
        self._component_cache.store(key, source_file, resolved)
        return resolved

    def resolve_module_specifier(self, importer: Path, specifier: str) -> Path | None:
        root = self.project_root
        if specifier.startswith("."):
            bases = [importer.parent / specifier]
        elif specifier.startswith("@/"):
            rest = specifier[2:]
            bases = [root / rest, root / "src" / rest, root / "app" / rest]
        elif specifier.startswith("~/"):
            rest = specifier[2:]
            bases = [root / rest, root / "src" / rest]
        elif specifier.startswith("/"):
            rest = specifier[1:]
            bases = [root / rest, root / "src" / rest]
        else:
            bases = [root / specifier, root / "src" / specifier,
                     root / "app" / specifier, root / "components" / specifier]
        for base in bases:
            found = _find_module_file(base)
            if found is not None:
                return found.resolve()
        return None

    def find_component_file(self, component_name: str) -> Path | None:
        """A file named after the component, or ``<Component>/index.*``."""
        index_match = None
        for path in self.iter_source_files(settings.COMPONENT_FILE_EXTENSIONS):
            if path.stem == component_name:
                return path
            if index_match is None and path.stem == "index" and path.parent.name == component_name:
                index_match = path
        return index_match


def _find_module_file(base: Path) -> Path | None:
    if base.is_file() and base.suffix in settings.COMPONENT_FILE_EXTENSIONS:
        return base
    for ext in settings.COMPONENT_FILE_EXTENSIONS:
        candidate = base.with_name(base.name + ext)
        if candidate.is_file():
            return candidate
    for ext in settings.COMPONENT_FILE_EXTENSIONS:
        candidate = base / f"index{ext}"
        if candidate.is_file():
            return candidate
    return None


def import_specifier_for(tree: SyntaxTree, local_name: str) -> str | None:
    """Module specifier of the import that binds ``local_name``, if any."""
    for statement in tree.walk({"import_statement"}):
        source = statement.child_by_field_name("source")
        if source is None:
            continue
        for clause in statement.named_children:
            if clause.type != "import_clause":
                continue
            if local_name in _import_clause_bindings(tree, clause):
                return tree.text(source)[1:-1]
    return None


def _import_clause_bindings(tree: SyntaxTree, clause) -> set[str]:
    bindings: set[str] = set()
    for child in clause.named_children:
        if child.type == "identifier":
            bindings.add(tree.text(child))
        elif child.type == "named_imports":
            for specifier in child.named_children:
                if specifier.type != "import_specifier":
                    continue
                alias = specifier.child_by_field_name("alias")
                name = specifier.child_by_field_name("name")
                bound = alias if alias is not None else name
                if bound is not None:
                    bindings.add(tree.text(bound))
    return bindings
