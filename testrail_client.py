"""
testrail_client.py – All TestRail REST interactions.

Every call goes through one authenticated `requests` session against
``https://<domain>/index.php?/api/v2/<endpoint>``.  TestRail reports
failures as a JSON body with an ``error`` key; those are raised as
RemoteCallError unless the caller passes an ``on_error`` callback.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable

import requests

from config import Settings
from models import ResultRecord

logger = logging.getLogger("testrail-sync")


class RemoteCallError(Exception):
    """TestRail answered with an error body or a non-2xx status."""

    def __init__(
        self,
        message: str,
        body: Any = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.body = body
        self.status_code = status_code


ErrorCallback = Callable[[RemoteCallError], None]


class TestRailClient:
    """Wraps every TestRail interaction needed by testrail-sync."""

    __test__ = False

    def __init__(
        self,
        settings: Settings,
        session: requests.Session | None = None,
    ) -> None:
        settings.validate()
        self._settings = settings
        self._project_id = settings.project_id
        self._base = settings.base_url

        self._session = session or requests.Session()
        self._session.auth = (settings.username, settings.password)
        self._json_header = {"Content-Type": "application/json"}

    @property
    def settings(self) -> Settings:
        return self._settings

    # ── Transport ───────────────────────────────────────────────────────

    def _url(self, api: str) -> str:
        return f"{self._base}?/api/v2/{api}"

    def _request(
        self,
        method: str,
        api: str,
        body: Any = None,
        on_error: ErrorCallback | None = None,
    ) -> Any:
        resp = self._session.request(
            method, self._url(api), json=body, headers=self._json_header
        )
        try:
            payload = resp.json() if resp.content else {}
        except ValueError:
            payload = {}

        error = payload.get("error") if isinstance(payload, dict) else None
        if error or not resp.ok:
            message = error or f"HTTP {resp.status_code} for {method} {api}"
            logger.error("TestRail %s %s failed: %s", method, api, message)
            exc = RemoteCallError(message, body=payload, status_code=resp.status_code)
            if on_error is None:
                raise exc
            on_error(exc)
        return payload

    def _get(self, api: str) -> Any:
        return self._request("GET", api)

    def _post(
        self, api: str, body: Any, on_error: ErrorCallback | None = None
    ) -> Any:
        return self._request("POST", api, body, on_error)

    def _get_all(self, api: str, key: str) -> list[dict[str, Any]]:
        """GET a list endpoint, following ``_links.next`` on paginated replies."""
        items: list[dict[str, Any]] = []
        next_api: str | None = api
        while next_api:
            page = self._get(next_api)
            if isinstance(page, list):
                items.extend(page)
                break
            items.extend(page.get(key, []) or [])
            link = (page.get("_links") or {}).get("next")
            next_api = link.split("/api/v2/", 1)[-1] if link else None
        return items

    # ── Links ───────────────────────────────────────────────────────────

    def run_url(self, run_id: int) -> str:
        return f"{self._base}?/runs/view/{run_id}"

    def plan_url(self, plan_id: int) -> str:
        return f"{self._base}?/plans/view/{plan_id}"

    # ── Sections ────────────────────────────────────────────────────────

    def add_section(
        self,
        name: str,
        parent_id: int | None = None,
        suite_id: int | None = None,
    ) -> dict[str, Any]:
        """Create a section, optionally nested under *parent_id*."""
        body: dict[str, Any] = {
            "suite_id": suite_id or self._settings.primary_suite_id,
            "name": name,
        }
        if parent_id:
            body["parent_id"] = parent_id
        section = self._post(f"add_section/{self._project_id}", body)
        logger.debug("Created section '%s' (id=%s)", name, section.get("id"))
        return section

    def get_sections(self, suite_id: int | None = None) -> list[dict[str, Any]]:
        suite_id = suite_id or self._settings.primary_suite_id
        return self._get_all(
            f"get_sections/{self._project_id}&suite_id={suite_id}", "sections"
        )

    # ── Cases ───────────────────────────────────────────────────────────

    def add_case(self, title: str, section_id: int) -> dict[str, Any]:
        case = self._post(f"add_case/{section_id}", {"title": title})
        logger.info("Created Test Case C%s  →  '%s'", case.get("id"), title)
        return case

    def get_cases(self, suite_id: int | None = None) -> list[dict[str, Any]]:
        suite_id = suite_id or self._settings.primary_suite_id
        return self._get_all(
            f"get_cases/{self._project_id}&suite_id={suite_id}", "cases"
        )

    def get_case_ids(self, suite_id: int | None = None) -> set[int]:
        """Live set of case ids owned by *suite_id*."""
        return {c["id"] for c in self.get_cases(suite_id)}

    def get_suite(self, suite_id: int) -> dict[str, Any]:
        return self._get(f"get_suite/{suite_id}")

    # ── Runs ────────────────────────────────────────────────────────────

    def add_run(
        self,
        name: str,
        description: str,
        suite_id: int,
        case_ids: Iterable[int],
    ) -> dict[str, Any]:
        run = self._post(
            f"add_run/{self._project_id}",
            {
                "suite_id": suite_id,
                "name": name,
                "description": description,
                "assignedto_id": self._settings.assigned_to_id,
                "include_all": self._settings.include_all_test,
                "case_ids": list(case_ids),
            },
        )
        logger.info("Created run '%s' (id=%s)", name, run.get("id"))
        return run

    def get_tests(self, run_id: int) -> list[dict[str, Any]]:
        return self._get_all(f"get_tests/{run_id}", "tests")

    def get_run_case_ids(self, run_id: int) -> list[int]:
        return [t["case_id"] for t in self.get_tests(run_id)]

    def update_run(self, run_id: int, case_ids: Iterable[int]) -> dict[str, Any]:
        return self._post(f"update_run/{run_id}", {"case_ids": list(case_ids)})

    # ── Plans ───────────────────────────────────────────────────────────

    def add_plan(
        self,
        name: str,
        description: str,
        entries: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        plan = self._post(
            f"add_plan/{self._project_id}",
            {"name": name, "description": description, "entries": entries or []},
        )
        logger.info("Created plan '%s' (id=%s)", name, plan.get("id"))
        return plan

    def get_plan(self, plan_id: int) -> dict[str, Any]:
        return self._get(f"get_plan/{plan_id}")

    def add_plan_entry(
        self,
        plan_id: int,
        suite_id: int,
        name: str,
        description: str,
        runs: list[dict[str, Any]],
        case_ids: Iterable[int],
    ) -> dict[str, Any]:
        entry = self._post(
            f"add_plan_entry/{plan_id}",
            {
                "include_all": self._settings.include_all_test,
                "suite_id": suite_id,
                "name": name,
                "description": description,
                "assignedto_id": self._settings.assigned_to_id,
                "runs": runs,
                "case_ids": list(case_ids),
            },
        )
        logger.debug("Added plan entry '%s' to plan %s", name, plan_id)
        return entry

    def update_plan_entry(
        self, plan_id: int, entry_id: str, case_ids: Iterable[int]
    ) -> dict[str, Any]:
        return self._post(
            f"update_plan_entry/{plan_id}/{entry_id}", {"case_ids": list(case_ids)}
        )

    # ── Results ─────────────────────────────────────────────────────────

    def add_results_for_cases(
        self,
        run_id: int,
        results: list[ResultRecord],
        on_error: ErrorCallback | None = None,
    ) -> Any:
        """Post every record for *run_id* in one batch."""
        body = {"results": [r.to_payload() for r in results]}
        failures: list[RemoteCallError] = []

        def collect(exc: RemoteCallError) -> None:
            failures.append(exc)
            on_error(exc)

        response = self._post(
            f"add_results_for_cases/{run_id}", body, collect if on_error else None
        )
        if not failures:
            logger.info("Posted %d results to run %s", len(results), run_id)
        return response
