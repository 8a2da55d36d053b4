"""
case_generator.py – Creates TestRail cases for un-annotated test declarations.

Walks a tree of test sources looking for declarations such as

    it('adds an item to the cart', ...)

Every declaration whose description carries no case id yet gets a new
TestRail case, filed under a section per folder plus one per file, and
the source is rewritten in place to

    it('adds an item to the cart C1234', ...)
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

from helpers import title_to_case_ids
from models import GenerationSummary
from section_resolver import SectionResolver
from testrail_client import TestRailClient

logger = logging.getLogger("testrail-sync")

FILE_SUFFIX = re.compile(r"\..*$")


def declaration_pattern(marker: str) -> re.Pattern[str]:
    """Match ``marker(<quote>description<quote>`` with the same quote on both ends."""
    return re.compile(
        rf"\b{re.escape(marker)}(\s*)\((\s*)(['\"`])(.+?)(?<!\\)\3"
    )


def file_section_name(file_name: str) -> str:
    """``login-page.test.js`` → ``login-page``."""
    return FILE_SUFFIX.sub("", file_name)


class CaseGenerator:
    """Annotates test declarations with freshly created TestRail case ids."""

    def __init__(
        self,
        client: TestRailClient,
        resolver: SectionResolver,
        marker: str = "it",
    ) -> None:
        self._client = client
        self._resolver = resolver
        self._marker = marker
        self._pattern = declaration_pattern(marker)

    def generate(self, base_path: str | Path) -> GenerationSummary:
        """Process every file below *base_path*."""
        base = Path(base_path).resolve()
        if not base.is_dir():
            raise FileNotFoundError(f"Base folder of cases not found: {base}")

        logger.info("Searching for test functions with '%s' keyword", self._marker)
        self._resolver.load_existing()

        summary = GenerationSummary()
        for dir_path, dir_names, file_names in os.walk(base):
            dir_names.sort()
            for file_name in sorted(file_names):
                file_path = Path(dir_path) / file_name
                summary.scanned_files += 1
                created = self.process_file(file_path, base)
                if created:
                    summary.created_ids.extend(created)
                    summary.updated_files.append(str(file_path))

        logger.info(
            "Created %d cases across %d files",
            len(summary.created_ids),
            len(summary.updated_files),
        )
        return summary

    def process_file(self, file_path: Path, base: Path) -> list[int]:
        """Create cases for one file; rewrite it once all creations succeeded."""
        try:
            source = file_path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            logger.debug("Skipping non-text file %s", file_path)
            return []

        if not self._pattern.search(source):
            return []

        folder = file_path.parent.relative_to(base).as_posix()
        if folder == ".":
            folder = ""
        leaf_name = file_section_name(file_path.name)
        created: list[int] = []

        def annotate(match: re.Match[str]) -> str:
            description = match.group(4)
            if title_to_case_ids(description):
                return match.group(0)
            section_id = self._resolver.resolve_leaf(folder, leaf_name)
            case = self._client.add_case(description, section_id)
            created.append(case["id"])
            logger.info("TestCase '%s' is created: %s", description, case["id"])
            return (
                f"{self._marker}{match.group(1)}({match.group(2)}"
                f"{match.group(3)}{description} C{case['id']}{match.group(3)}"
            )

        updated = self._pattern.sub(annotate, source)
        if created:
            file_path.write_text(updated, encoding="utf-8")
            logger.info("File %s is updated", file_path)
        return created
