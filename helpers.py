"""
helpers.py – Small pure functions shared by the reporter and the generator.
"""

from __future__ import annotations

import re
from typing import Any, Iterable

CASE_ID_PATTERN = re.compile(r"\bT?C(\d+)\b")


def title_to_case_ids(title: str) -> list[int]:
    """Return every TestRail case id referenced in *title* (``C123`` / ``TC123``)."""
    return [int(m.group(1)) for m in CASE_ID_PATTERN.finditer(title or "")]


def merge_case_ids(current: Iterable[int], new: Iterable[int]) -> list[int]:
    """Union of two case-id lists; new ids first, each id once."""
    merged: list[int] = []
    seen: set[int] = set()
    for case_id in [*new, *current]:
        if case_id is None or case_id in seen:
            continue
        seen.add(case_id)
        merged.append(case_id)
    return merged


def browser_combo(caps: dict[str, Any], verbose: bool = True) -> str:
    """Describe a capability set as browser, version and platform.

    Mobile capabilities (``deviceName``) are described by device and
    platform, with the app or browser being executed when *verbose*.
    """
    device = caps.get("deviceName") or ""
    browser = caps.get("browserName") or caps.get("browser") or ""
    version = caps.get("version") or caps.get("platformVersion") or caps.get("browser_version") or ""
    if caps.get("os"):
        platform = f"{caps['os']} {caps.get('os_version', '')}".strip()
    else:
        platform = caps.get("platform") or caps.get("platformName") or ""
    custom_name = caps.get("customName")

    if custom_name:
        return f"{custom_name} - {browser}" + (f" (v{version})" if version else "")

    if device:
        program = (caps.get("app") or "").replace("sauce-storage:", "") or browser
        executing = f"executing {program}" if program else ""
        if not verbose:
            return " ".join(p for p in (device, platform, version) if p)
        return " ".join(p for p in (device, "on", platform, version, executing) if p)

    if not verbose:
        return " ".join(p for p in (browser, version, platform) if p)

    return browser + (f" (v{version})" if version else "") + (f" on {platform}" if platform else "")
