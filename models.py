"""
models.py – Plain data-classes shared across every module.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any


class Status(IntEnum):
    """TestRail's built-in result statuses."""

    PASSED = 1
    BLOCKED = 2
    UNTESTED = 3
    RETEST = 4
    FAILED = 5


class Topology(str, Enum):
    """Shape of the run/plan a publish materialises."""

    SINGLE_SUITE_SINGLE_CAP = "single-suite-single-capability"
    SINGLE_SUITE_MULTI_CAP = "single-suite-multi-capability"
    MULTI_SUITE_CREATE = "multi-suite-create"
    MULTI_SUITE_UPDATE = "multi-suite-update"


@dataclass(eq=False)
class RunnerDescriptor:
    """One distinct execution environment (browser, platform, device, app).

    Two descriptors are equal when their canonical JSON form is equal.
    """

    capabilities: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return json.dumps(self.capabilities, sort_keys=True, default=str)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RunnerDescriptor):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)


@dataclass
class RunnerSession:
    """Connection metadata the runner reports for one worker."""

    cid: str
    descriptor: RunnerDescriptor
    session_id: str = ""
    host: str = ""
    sauce_connect: bool = False


@dataclass
class TestOutcome:
    """A single pass / fail / pending notification from the test runner."""

    __test__ = False

    title: str
    uid: str = ""
    cid: str = ""
    error_message: str = ""
    error_stack: str = ""


@dataclass
class Screenshot:
    """A failure screenshot captured for the outcome with the same *uid*."""

    uid: str
    filename: str
    url: str = ""


@dataclass
class ResultRecord:
    """One status to attach to one case id."""

    case_id: int
    status: Status
    runner: RunnerDescriptor
    comment: str = ""

    def to_payload(self) -> dict[str, Any]:
        return {
            "case_id": self.case_id,
            "status_id": int(self.status),
            "comment": self.comment,
        }


@dataclass
class Section:
    """A TestRail section (folder) and the slug path it was resolved from."""

    id: int
    name: str
    parent_id: int | None = None
    path: str = ""


@dataclass
class Run:
    id: int
    suite_id: int | None = None
    name: str = ""
    case_ids: list[int] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Run":
        return cls(
            id=data["id"],
            suite_id=data.get("suite_id"),
            name=data.get("name", ""),
        )


@dataclass
class PlanEntry:
    id: str
    suite_id: int | None = None
    name: str = ""
    runs: list[Run] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "PlanEntry":
        return cls(
            id=data["id"],
            suite_id=data.get("suite_id"),
            name=data.get("name", ""),
            runs=[Run.from_api(r) for r in data.get("runs", []) or []],
        )


@dataclass
class Plan:
    id: int
    name: str = ""
    entries: list[PlanEntry] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Plan":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            entries=[PlanEntry.from_api(e) for e in data.get("entries", []) or []],
        )


@dataclass
class PublishSummary:
    """Summary returned after results have been published."""

    topology: Topology
    target: str                           # "run" | "plan"
    target_id: int
    url: str = ""
    config_hint: str = ""
    run_ids: list[int] = field(default_factory=list)
    results_posted: int = 0


@dataclass
class GenerationSummary:
    """Summary returned after a case-generation pass over a source tree."""

    created_ids: list[int] = field(default_factory=list)
    updated_files: list[str] = field(default_factory=list)
    scanned_files: int = 0
