"""
result_aggregator.py – Collects test-runner notifications for one execution.

The aggregator is fed runner and test events in the order the runner
emits them, turns every passed / failed outcome into one ResultRecord per
referenced case id, and hands everything to the reconciliation engine
when the execution ends.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

from config import Settings
from helpers import browser_combo, title_to_case_ids
from models import (
    PublishSummary,
    ResultRecord,
    RunnerDescriptor,
    RunnerSession,
    Screenshot,
    Status,
    TestOutcome,
)
from reconciler import ReconciliationEngine

logger = logging.getLogger("testrail-sync")

REPORTER_NAME = "TestRail sync reporter"
NO_SCREENSHOT = "No screenshot available."


class ResultAggregator:
    """Accumulates counts, result records and runner descriptors."""

    def __init__(
        self,
        settings: Settings,
        engine: ReconciliationEngine | None = None,
        extract_case_ids: Callable[[str], list[int]] = title_to_case_ids,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._settings = settings
        self._engine = engine
        self._extract = extract_case_ids
        self._clock = clock

        self.passes = 0
        self.fails = 0
        self.pending = 0
        self.results: list[ResultRecord] = []
        self.summary_lines: list[str] = []

        self._runners: dict[str, RunnerDescriptor] = {}
        self._sessions: dict[str, RunnerSession] = {}
        self._active: RunnerSession | None = None
        self._screenshots: dict[str, Screenshot] = {}

    @property
    def total(self) -> int:
        return self.passes + self.fails + self.pending

    @property
    def runners(self) -> list[RunnerDescriptor]:
        """Distinct runner descriptors, in order of first announcement."""
        return list(self._runners.values())

    # ── Event handlers ──────────────────────────────────────────────────

    def on_runner_start(
        self,
        cid: str,
        capabilities: dict[str, Any],
        session_id: str = "",
        host: str = "",
        sauce_connect: bool = False,
    ) -> None:
        descriptor = RunnerDescriptor(dict(capabilities or {}))
        descriptor = self._runners.setdefault(descriptor.key, descriptor)
        session = RunnerSession(
            cid=cid,
            descriptor=descriptor,
            session_id=session_id,
            host=host,
            sauce_connect=sauce_connect,
        )
        self._sessions[cid] = session
        self._active = session
        logger.debug("Runner %s started: %s", cid, browser_combo(descriptor.capabilities))

    def on_pending(self, outcome: TestOutcome) -> None:
        self.pending += 1
        self.summary_lines.append(f"{outcome.title}: pending")

    def on_pass(self, outcome: TestOutcome) -> None:
        self.passes += 1
        self.summary_lines.append(f"{outcome.title}: pass")
        self._record(outcome, Status.PASSED, self.run_comment(outcome))

    def on_fail(self, outcome: TestOutcome) -> None:
        self.fails += 1
        self.summary_lines.append(f"{outcome.title}: fail")
        self._record(outcome, Status.FAILED, self.failure_comment(outcome))

    def on_screenshot(self, uid: str, filename: str) -> None:
        shot = Screenshot(uid=uid, filename=filename)
        if self._settings.errorshot_host:
            shot.url = f"{self._settings.errorshot_host}/{filename}"
        self._screenshots[uid] = shot

    def on_end(self) -> PublishSummary | None:
        """Publish the collected results; a run without matches is a no-op."""
        if self.summary_lines:
            logger.info("Execution summary:\n%s", "\n".join(self.summary_lines))
        if not self.results:
            logger.warning(
                "No testcases were matched. Ensure that your tests are declared "
                "correctly and match Cxxx.\n"
                "You may use the generate-cases command to do it automatically."
            )
            return None

        name = self.build_name()
        description = self.build_description(name)
        if self._engine is None:
            raise RuntimeError("No reconciliation engine configured for publishing")
        return self._engine.publish(name, description, self.results, self.runners)

    def dispatch(self, event: str, payload: dict[str, Any]) -> PublishSummary | None:
        """Route a raw runner event (``test:pass``, ``end``…) to its handler."""
        if event == "runner:start":
            self.on_runner_start(
                cid=str(payload.get("cid", "")),
                capabilities=payload.get("capabilities") or {},
                session_id=payload.get("session_id", ""),
                host=payload.get("host", ""),
                sauce_connect=bool(payload.get("sauce_connect", False)),
            )
        elif event in ("test:pending", "test:pass", "test:fail"):
            error = payload.get("error") or {}
            outcome = TestOutcome(
                title=payload.get("title", ""),
                uid=str(payload.get("uid", "")),
                cid=str(payload.get("cid", "")),
                error_message=error.get("message", ""),
                error_stack=error.get("stack", ""),
            )
            handler = {
                "test:pending": self.on_pending,
                "test:pass": self.on_pass,
                "test:fail": self.on_fail,
            }[event]
            handler(outcome)
        elif event == "runner:screenshot":
            self.on_screenshot(str(payload.get("uid", "")), payload.get("filename", ""))
        elif event == "end":
            return self.on_end()
        else:
            logger.debug("Ignoring unknown event '%s'", event)
        return None

    # ── Naming ──────────────────────────────────────────────────────────

    def build_name(self) -> str:
        run_name = self._settings.run_name or REPORTER_NAME
        executed_at = self._clock().strftime("%Y-%m-%d %H:%M:%S")
        return f"{run_name}: automated test run {executed_at}"

    def build_description(self, name: str) -> str:
        return (
            f"{name}\n"
            "**Execution summary:**\n"
            f"Passes: {self.passes}\n"
            f"Fails: {self.fails}\n"
            f"Pending: {self.pending}\n"
            f"Total: {self.total}\n"
        )

    # ── Comments ────────────────────────────────────────────────────────

    def run_comment(self, outcome: TestOutcome) -> str:
        return outcome.title

    def failure_comment(self, outcome: TestOutcome) -> str:
        session = self._session_for(outcome)
        caps = session.descriptor.capabilities if session else {}
        error = f"**{outcome.error_message}**\n\n" if outcome.error_message else ""
        stack = f"> {outcome.error_stack}\n\n" if outcome.error_stack else ""
        return (
            f"{self.run_comment(outcome)}\n\n"
            f"{error}"
            f"{stack}"
            "----\n\n"
            "_Additional Test Context_\n\n"
            "**Session Id/Saucelabs Link:**\n"
            f"> {self.session_id_or_job_link(session) or 'n/a'}\n\n"
            "**Browser Info:**\n"
            f"> {browser_combo(caps) if caps else 'n/a'}\n\n"
            "**Screenshot:**\n"
            f"> {self.errorshot_comment(self._screenshots.get(outcome.uid))}\n"
        )

    def session_id_or_job_link(self, session: RunnerSession | None) -> str | None:
        """Sauce Labs job link when running there, the bare session id otherwise."""
        if session is None or not session.host:
            return None
        if "saucelabs.com" in session.host or session.sauce_connect:
            return f"Check out job at https://saucelabs.com/tests/{session.session_id}"
        return session.session_id

    def errorshot_comment(self, screenshot: Screenshot | None) -> str:
        if screenshot is None:
            return NO_SCREENSHOT
        if screenshot.url:
            link = f"[{screenshot.filename}]({screenshot.url})"
            return f"!{link}\n> {link}"
        return screenshot.filename

    # ── Internals ───────────────────────────────────────────────────────

    def _session_for(self, outcome: TestOutcome) -> RunnerSession | None:
        return self._sessions.get(outcome.cid) or self._active

    def _record(self, outcome: TestOutcome, status: Status, comment: str) -> None:
        case_ids = self._extract(outcome.title)
        if not case_ids:
            return
        session = self._session_for(outcome)
        if session is None:
            # outcome arrived before any runner announced itself
            descriptor = RunnerDescriptor()
            descriptor = self._runners.setdefault(descriptor.key, descriptor)
            session = RunnerSession(cid=outcome.cid, descriptor=descriptor)
        for case_id in case_ids:
            self.results.append(
                ResultRecord(
                    case_id=case_id,
                    status=status,
                    runner=session.descriptor,
                    comment=comment,
                )
            )
