from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Mapping

from .errors import ProjectValidationError


@dataclass(frozen=True)
class SchedulerSettings:
    """Tunable thresholds shared by the engines; loaded from a project's `settings` mapping."""

    gap_warning_days: int = 30
    default_max_occurrences: int = 100
    max_occurrence_warning: int = 1000
    approaching_deadline_days: int = 7


DEFAULT_SETTINGS = SchedulerSettings()


def settings_from_mapping(data: Mapping[str, Any] | None, where: str = "settings") -> SchedulerSettings:
    """Build settings from a plain mapping, rejecting unknown keys and non-positive values."""

    if data is None:
        return DEFAULT_SETTINGS
    if not isinstance(data, Mapping):
        raise ProjectValidationError(f"{where}: expected mapping")

    known = {f.name for f in fields(SchedulerSettings)}
    extras = sorted(set(data) - known)
    if extras:
        raise ProjectValidationError(f"{where}: unexpected fields {extras}")

    values: dict[str, int] = {}
    for key, value in data.items():
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            raise ProjectValidationError(f"{where}.{key}: expected positive integer")
        values[key] = value
    return SchedulerSettings(**values)
