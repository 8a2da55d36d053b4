"""
section_resolver.py – Maps slug paths of test folders onto TestRail sections.

A path such as ``checkout/payment-methods`` resolves to the section
"Payment methods" nested under "Checkout".  Missing ancestors are
created on demand and every resolved path is cached, so each path is
created at most once per process.
"""

from __future__ import annotations

import logging
import os
import re

from models import Section
from testrail_client import RemoteCallError, TestRailClient

logger = logging.getLogger("testrail-sync")


class SectionCreationError(Exception):
    """TestRail refused to create a section."""


def path_to_section_name(segment: str) -> str:
    """Replace the first '-' with a space and upper-case the first letter."""
    segment = segment.replace("-", " ", 1)
    return segment[:1].upper() + segment[1:]


def section_name_to_path(name: str) -> str:
    """Replace the first space with '-' and lower-case the first letter."""
    name = name.replace(" ", "-", 1)
    return name[:1].lower() + name[1:]


class SectionResolver:
    """Resolves slug paths to section ids, creating sections lazily."""

    def __init__(
        self,
        client: TestRailClient,
        suite_id: int | None = None,
        root_prefix: str = "tests",
    ) -> None:
        self._client = client
        self._suite_id = suite_id
        self._sections: dict[str, int] = {}
        self._children: dict[tuple[int | None, str], int] = {}
        self._prefix = (
            re.compile(rf"^(?:.*/)?{re.escape(root_prefix)}(?:/|$)")
            if root_prefix
            else None
        )

    @property
    def sections(self) -> dict[str, int]:
        return dict(self._sections)

    def normalize(self, path: str) -> str:
        """Turn a relative folder path into the cache key used for it."""
        path = path.replace(os.sep, "/")
        if self._prefix is not None:
            path = self._prefix.sub("", path, count=1)
        return "/".join(p for p in path.split("/") if p)

    def path_for_section_id(self, section_id: int | None) -> str:
        for path, cached_id in self._sections.items():
            if cached_id == section_id:
                return path
        return ""

    def load_existing(self) -> dict[str, int]:
        """Import every section of the suite into the cache.

        Sections are processed in ascending parent-id order (root sections
        first) so a parent's path is known before its children need it.
        When two siblings share a slug, the one whose name reads like a
        folder section ("Cart" rather than "cart") owns the path.
        """
        sections = self._client.get_sections(self._suite_id)
        sections.sort(key=lambda s: s.get("parent_id") or 0)

        for raw in sections:
            section = Section(
                id=raw["id"],
                name=raw.get("name", ""),
                parent_id=raw.get("parent_id"),
            )
            section.path = section_name_to_path(section.name)
            if section.parent_id:
                parent_path = self.path_for_section_id(section.parent_id)
                section.path = "/".join(p for p in (parent_path, section.path) if p)
            self._children[(section.parent_id or None, section.name)] = section.id

            slug = section.path.rsplit("/", 1)[-1]
            if section.path not in self._sections or path_to_section_name(slug) == section.name:
                self._sections[section.path] = section.id

        logger.info("Loaded %d existing sections", len(self._sections))
        return self.sections

    def resolve_or_create(self, path: str) -> int | None:
        """Return the section id for *path*, creating missing sections.

        An empty path means the suite root and resolves to ``None``.
        """
        segments = self.normalize(path).split("/") if path else []
        segments = [s for s in segments if s]
        if not segments:
            return None

        # Longest prefix already known; everything below it gets created.
        parent_id: int | None = None
        start = 0
        for depth in range(len(segments), 0, -1):
            cached = self._sections.get("/".join(segments[:depth]))
            if cached is not None:
                parent_id, start = cached, depth
                break

        for depth in range(start + 1, len(segments) + 1):
            name = path_to_section_name(segments[depth - 1])
            parent_id = self._create("/".join(segments[:depth]), name, parent_id)

        return parent_id

    def resolve_leaf(self, parent_path: str, name: str) -> int:
        """Return the section literally called *name* under *parent_path*.

        Leaf sections live apart from folder paths: they are matched by
        their literal name under the folder section's id, so a file and a
        sub-folder with the same slug never share a section.
        """
        parent_id = self.resolve_or_create(parent_path)
        key = (parent_id, name)
        if key in self._children:
            return self._children[key]
        path = "/".join(p for p in (self.normalize(parent_path), name) if p)
        return self._create(path, name, parent_id, cache_path=False)

    def _create(
        self,
        path: str,
        name: str,
        parent_id: int | None,
        cache_path: bool = True,
    ) -> int:
        try:
            section = self._client.add_section(name, parent_id, self._suite_id)
        except RemoteCallError as exc:
            raise SectionCreationError(
                f"Could not create section '{name}' for path '{path}': {exc}"
            ) from exc
        if cache_path:
            self._sections[path] = section["id"]
        self._children[(parent_id, name)] = section["id"]
        logger.info("Section '%s' is created: %s", name, section["id"])
        return section["id"]
