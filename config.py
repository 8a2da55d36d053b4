"""
config.py – Centralised configuration loaded from environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

TRUTHY = {"1", "true", "yes", "on"}


class ConfigurationError(Exception):
    """Raised when a required TestRail option is missing or malformed."""


def _optional_int(name: str) -> int | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got '{raw}'") from exc


def parse_suite_ids(raw: str) -> int | list[int] | None:
    """Parse ``3`` into a single suite and ``3,4`` / ``[3,4]`` into a list."""
    raw = raw.strip()
    if not raw:
        return None
    as_list = raw.startswith("[") or "," in raw
    parts = [p.strip() for p in raw.strip("[]").split(",") if p.strip()]
    try:
        ids = [int(p) for p in parts]
    except ValueError as exc:
        raise ConfigurationError(
            f"TESTRAIL_SUITE_ID must be a number or a list of numbers, got '{raw}'"
        ) from exc
    if as_list:
        return ids
    return ids[0] if ids else None


@dataclass
class Settings:
    """Validated TestRail options."""

    # ── Connection ──────────────────────────────────────────
    domain: str = ""
    username: str = ""
    password: str = ""

    # ── Target ──────────────────────────────────────────────
    project_id: int | None = None
    suite_id: int | list[int] | None = None
    assigned_to_id: int | None = None
    include_all_test: bool = False

    # ── Behaviour ───────────────────────────────────────────
    update_run: int | None = None
    update_plan: int | None = None
    run_name: str = ""
    errorshot_host: str = ""

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ``TESTRAIL_*`` variables (``.env`` included)."""
        return cls(
            domain=os.getenv("TESTRAIL_DOMAIN", "").strip(),
            username=os.getenv("TESTRAIL_USERNAME", "").strip(),
            password=os.getenv("TESTRAIL_PASSWORD", "").strip(),
            project_id=_optional_int("TESTRAIL_PROJECT_ID"),
            suite_id=parse_suite_ids(os.getenv("TESTRAIL_SUITE_ID", "")),
            assigned_to_id=_optional_int("TESTRAIL_ASSIGNED_TO_ID"),
            include_all_test=(
                os.getenv("TESTRAIL_INCLUDE_ALL", "").strip().lower() in TRUTHY
            ),
            update_run=_optional_int("TESTRAIL_UPDATE_RUN"),
            update_plan=_optional_int("TESTRAIL_UPDATE_PLAN"),
            run_name=os.getenv("TESTRAIL_RUN_NAME", "").strip(),
            errorshot_host=os.getenv("TESTRAIL_ERRORSHOT_HOST", "").strip().rstrip("/"),
        )

    @property
    def base_url(self) -> str:
        return f"https://{self.domain}/index.php"

    @property
    def is_multi_suite(self) -> bool:
        return isinstance(self.suite_id, list)

    @property
    def suite_ids(self) -> list[int]:
        """The configured suites as an ordered list."""
        if self.suite_id is None:
            return []
        if isinstance(self.suite_id, list):
            return list(self.suite_id)
        return [self.suite_id]

    @property
    def primary_suite_id(self) -> int | None:
        ids = self.suite_ids
        return ids[0] if ids else None

    def validate(self) -> None:
        """Halt early if required values are missing."""
        missing: list[str] = []
        if not self.domain:
            missing.append("TESTRAIL_DOMAIN")
        if not self.username:
            missing.append("TESTRAIL_USERNAME")
        if not self.password:
            missing.append("TESTRAIL_PASSWORD")
        if self.project_id is None:
            missing.append("TESTRAIL_PROJECT_ID")
        if not self.suite_ids:
            missing.append("TESTRAIL_SUITE_ID")

        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}\n"
                "  → Copy .env.example to .env and fill in all values."
            )
