"""Pytest configuration and shared fixtures."""

import itertools
from unittest.mock import Mock

import pytest

from config import Settings
from models import ResultRecord, RunnerDescriptor, Status
from testrail_client import TestRailClient

TESTRAIL_VARS = (
    "TESTRAIL_DOMAIN",
    "TESTRAIL_USERNAME",
    "TESTRAIL_PASSWORD",
    "TESTRAIL_PROJECT_ID",
    "TESTRAIL_SUITE_ID",
    "TESTRAIL_ASSIGNED_TO_ID",
    "TESTRAIL_INCLUDE_ALL",
    "TESTRAIL_UPDATE_RUN",
    "TESTRAIL_UPDATE_PLAN",
    "TESTRAIL_RUN_NAME",
    "TESTRAIL_ERRORSHOT_HOST",
)


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Remove every TESTRAIL_* variable from the environment."""
    for name in TESTRAIL_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def settings() -> Settings:
    """Settings for a single suite."""
    return Settings(
        domain="example.testrail.io",
        username="qa@example.com",
        password="api-key",
        project_id=1,
        suite_id=3,
    )


@pytest.fixture
def multi_suite_settings(settings: Settings) -> Settings:
    """Settings targeting two suites."""
    settings.suite_id = [10, 20]
    return settings


# ============================================================================
# Client Fixtures
# ============================================================================


@pytest.fixture
def client_mock(settings: Settings) -> Mock:
    """TestRail client double that hands out increasing ids."""
    client = Mock(spec=TestRailClient)
    client.settings = settings
    client.run_url.side_effect = (
        lambda run_id: f"https://example.testrail.io/index.php?/runs/view/{run_id}"
    )
    client.plan_url.side_effect = (
        lambda plan_id: f"https://example.testrail.io/index.php?/plans/view/{plan_id}"
    )

    section_ids = itertools.count(100)
    client.add_section.side_effect = lambda name, parent_id=None, suite_id=None: {
        "id": next(section_ids),
        "name": name,
        "parent_id": parent_id,
    }
    client.get_sections.return_value = []
    return client


# ============================================================================
# Record Helpers
# ============================================================================


CHROME = RunnerDescriptor({"browserName": "chrome", "platform": "Linux"})
FIREFOX = RunnerDescriptor({"browserName": "firefox", "platform": "Linux"})
SAFARI = RunnerDescriptor({"browserName": "safari", "platform": "macOS"})


def make_record(case_id: int, runner: RunnerDescriptor = CHROME, status: Status = Status.PASSED) -> ResultRecord:
    return ResultRecord(case_id=case_id, status=status, runner=runner, comment=f"case {case_id}")
