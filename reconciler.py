"""
reconciler.py – Publishes collected results as a TestRail run or plan.

The shape of what gets created depends on two things: how many suites are
configured and how many distinct runners (capabilities) produced results.

  ├─ one suite, one runner       → a single run (new, or TESTRAIL_UPDATE_RUN)
  ├─ one suite, many runners     → a plan with one entry per runner
  ├─ many suites                 → a plan with one entry per suite × runner
  └─ plan + TESTRAIL_UPDATE_PLAN → every entry of the existing plan is extended

Case-id membership is always merged as a set union with what TestRail
already holds, so re-running an update is safe.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from config import Settings
from helpers import browser_combo, merge_case_ids
from models import Plan, PublishSummary, ResultRecord, RunnerDescriptor, Topology
from testrail_client import ErrorCallback, TestRailClient

logger = logging.getLogger("testrail-sync")


def select_topology(settings: Settings, runner_count: int) -> Topology:
    """Pick the run/plan shape from the configuration and the runner count."""
    if not settings.is_multi_suite and runner_count <= 1:
        return Topology.SINGLE_SUITE_SINGLE_CAP
    if settings.update_plan:
        return Topology.MULTI_SUITE_UPDATE
    if settings.is_multi_suite:
        return Topology.MULTI_SUITE_CREATE
    return Topology.SINGLE_SUITE_MULTI_CAP


def distinct_runners(runners: Iterable[RunnerDescriptor]) -> list[RunnerDescriptor]:
    """Deduplicate by canonical form, keeping first occurrences in order."""
    seen: dict[str, RunnerDescriptor] = {}
    for runner in runners:
        seen.setdefault(runner.key, runner)
    return list(seen.values())


def case_ids_of(records: Iterable[ResultRecord]) -> list[int]:
    return merge_case_ids([], [r.case_id for r in records])


# ── Public API ──────────────────────────────────────────────────────────

class ReconciliationEngine:
    """Creates or updates runs / plans and attaches result records."""

    def __init__(self, client: TestRailClient) -> None:
        self._client = client
        self._settings = client.settings
        self._handlers: dict[Topology, Callable[..., PublishSummary]] = {
            Topology.SINGLE_SUITE_SINGLE_CAP: self._publish_single_run,
            Topology.SINGLE_SUITE_MULTI_CAP: self._publish_capability_plan,
            Topology.MULTI_SUITE_CREATE: self._publish_suite_plan,
            Topology.MULTI_SUITE_UPDATE: self._update_plan,
        }

    def publish(
        self,
        name: str,
        description: str,
        results: list[ResultRecord],
        runners: Iterable[RunnerDescriptor],
        on_result_error: ErrorCallback | None = None,
    ) -> PublishSummary:
        """Push *results* to TestRail; remote failures abort the publish."""
        runner_list = distinct_runners(runners)
        if not runner_list:
            runner_list = distinct_runners(r.runner for r in results)

        topology = select_topology(self._settings, len(runner_list))
        logger.info(
            "Publishing %d results from %d runner(s) as %s",
            len(results),
            len(runner_list),
            topology.value,
        )

        summary = self._handlers[topology](
            name, description, results, runner_list, on_result_error
        )
        logger.info("Results published to %s", summary.url)
        logger.info(summary.config_hint)
        return summary

    # ── Handlers ────────────────────────────────────────────────────────

    def _publish_single_run(
        self,
        name: str,
        description: str,
        results: list[ResultRecord],
        runners: list[RunnerDescriptor],
        on_error: ErrorCallback | None,
    ) -> PublishSummary:
        case_ids = case_ids_of(results)

        if self._settings.update_run:
            run_id = self._settings.update_run
            current = self._client.get_run_case_ids(run_id)
            merged = merge_case_ids(current, case_ids)
            self._client.update_run(run_id, merged)
            logger.info(
                "Run %s extended from %d to %d cases", run_id, len(current), len(merged)
            )
        else:
            run = self._client.add_run(
                name, description, self._settings.primary_suite_id, case_ids
            )
            run_id = run["id"]

        posted = self._post_results(run_id, results, on_error)
        return PublishSummary(
            topology=Topology.SINGLE_SUITE_SINGLE_CAP,
            target="run",
            target_id=run_id,
            url=self._client.run_url(run_id),
            config_hint=f"Add TESTRAIL_UPDATE_RUN={run_id} to your config to update this run.",
            run_ids=[run_id],
            results_posted=posted,
        )

    def _publish_capability_plan(
        self,
        name: str,
        description: str,
        results: list[ResultRecord],
        runners: list[RunnerDescriptor],
        on_error: ErrorCallback | None,
    ) -> PublishSummary:
        suite_id = self._settings.primary_suite_id
        suite_name = self._client.get_suite(suite_id).get("name", "")
        plan_id = self._client.add_plan(name, description)["id"]

        run_ids: list[int] = []
        posted = 0
        for runner in runners:
            env = self._describe(runner) or suite_name
            matched = [r for r in results if r.runner == runner]
            run_id = self._add_entry(plan_id, suite_id, env, env, description, matched)
            run_ids.append(run_id)
            posted += self._post_results(run_id, matched, on_error)

        return self._plan_summary(
            Topology.SINGLE_SUITE_MULTI_CAP, plan_id, run_ids, posted
        )

    def _publish_suite_plan(
        self,
        name: str,
        description: str,
        results: list[ResultRecord],
        runners: list[RunnerDescriptor],
        on_error: ErrorCallback | None,
    ) -> PublishSummary:
        plan_id = self._client.add_plan(name, description)["id"]

        run_ids: list[int] = []
        posted = 0
        for suite_id in self._settings.suite_ids:
            suite_name = self._client.get_suite(suite_id).get("name", "")
            suite_cases = self._client.get_case_ids(suite_id)
            owned = [r for r in results if r.case_id in suite_cases]

            for runner in runners:
                env = self._describe(runner)
                entry_name = env or suite_name
                run_name = f"{env} | {suite_name}" if env else suite_name
                matched = [r for r in owned if r.runner == runner]
                run_id = self._add_entry(
                    plan_id, suite_id, entry_name, run_name, description, matched
                )
                run_ids.append(run_id)
                posted += self._post_results(run_id, matched, on_error)

        return self._plan_summary(Topology.MULTI_SUITE_CREATE, plan_id, run_ids, posted)

    def _update_plan(
        self,
        name: str,
        description: str,
        results: list[ResultRecord],
        runners: list[RunnerDescriptor],
        on_error: ErrorCallback | None,
    ) -> PublishSummary:
        plan = Plan.from_api(self._client.get_plan(self._settings.update_plan))

        run_ids: list[int] = []
        posted = 0
        for entry in plan.entries:
            if not entry.runs:
                logger.warning("Plan entry '%s' has no runs; skipping", entry.name)
                continue
            run = entry.runs[0]
            suite_id = run.suite_id or entry.suite_id
            suite_cases = self._client.get_case_ids(suite_id)
            current = self._client.get_run_case_ids(run.id)

            matched = [r for r in results if r.case_id in suite_cases]
            self._client.update_plan_entry(
                plan.id, entry.id, merge_case_ids(current, case_ids_of(matched))
            )
            run_ids.append(run.id)
            posted += self._post_results(run.id, matched, on_error)

        return self._plan_summary(Topology.MULTI_SUITE_UPDATE, plan.id, run_ids, posted)

    # ── Internals ───────────────────────────────────────────────────────

    def _describe(self, runner: RunnerDescriptor) -> str:
        return browser_combo(runner.capabilities) if runner.capabilities else ""

    def _add_entry(
        self,
        plan_id: int,
        suite_id: int,
        entry_name: str,
        run_name: str,
        description: str,
        records: list[ResultRecord],
    ) -> int:
        entry = self._client.add_plan_entry(
            plan_id,
            suite_id,
            entry_name,
            description,
            [{"name": run_name, "description": description, "suite_id": suite_id}],
            case_ids_of(records),
        )
        return entry["runs"][0]["id"]

    def _post_results(
        self,
        run_id: int,
        records: list[ResultRecord],
        on_error: ErrorCallback | None,
    ) -> int:
        if not records:
            logger.debug("No results to attach to run %s", run_id)
            return 0
        self._client.add_results_for_cases(run_id, records, on_error=on_error)
        return len(records)

    def _plan_summary(
        self, topology: Topology, plan_id: int, run_ids: list[int], posted: int
    ) -> PublishSummary:
        return PublishSummary(
            topology=topology,
            target="plan",
            target_id=plan_id,
            url=self._client.plan_url(plan_id),
            config_hint=f"Add TESTRAIL_UPDATE_PLAN={plan_id} to your config to update this plan.",
            run_ids=run_ids,
            results_posted=posted,
        )
