"""
Lifecycle and obsolescence tracking.

Derives urgency levels from a part's lifecycle stage and EOL dates, raises
obsolescence alerts, and scores how compatible an alternative part is.
Dates are always passed in (`today`) so results do not depend on the clock.
"""

import datetime
import logging
from collections.abc import Iterable

import src.bom_core.constants as C
from src.bom_core.types import BomSnapshot, LifecycleAlert, PartCatalogEntry

logger = logging.getLogger(__name__)


def months_until(today: datetime.date, target: datetime.date) -> int:
    """Whole calendar months from `today` to `target` (negative if past)."""
    months = (target.year - today.year) * 12 + (target.month - today.month)
    if months > 0 and target.day < today.day:
        months -= 1
    elif months < 0 and target.day > today.day:
        months += 1
    return months


def days_until_eol(part: PartCatalogEntry, today: datetime.date) -> int | None:
    return (part.eol_date - today).days if part.eol_date else None


def is_at_risk(part: PartCatalogEntry) -> bool:
    """True for eol_announced, eol and obsolete parts."""
    return part.lifecycle_stage in C.AT_RISK_STAGES


def urgency_level(part: PartCatalogEntry, today: datetime.date) -> str:
    """
    Grades how urgently a part needs attention.

    - critical: obsolete, eol, or an EOL date already in the past.
    - high: eol_announced with EOL less than six months away.
    - medium: eol_announced further out, or nrnd.
    - low: everything else.
    """
    stage = part.lifecycle_stage
    if stage in ("obsolete", "eol"):
        return "critical"
    if part.eol_date and part.eol_date < today:
        return "critical"
    if stage == "eol_announced":
        if part.eol_date and months_until(today, part.eol_date) < C.EOL_IMMINENT_MONTHS:
            return "high"
        return "medium"
    if stage == "nrnd":
        return "medium"
    return "low"


def find_affected_projects(
    part_id: str, snapshots: Iterable[BomSnapshot]
) -> list[str]:
    """Projects whose snapshots resolve any item to the given part."""
    projects = {
        snap.project
        for snap in snapshots
        if snap.project and any(r.part_id == part_id for r in snap)
    }
    return sorted(projects)


def generate_alerts_for_part(
    part: PartCatalogEntry,
    today: datetime.date,
    affected_projects: list[str] | None = None,
) -> list[LifecycleAlert]:
    """Builds every alert that currently applies to one part."""
    affected = affected_projects or []
    alerts: list[LifecycleAlert] = []

    def alert(alert_type: str, severity: str, title: str, message: str) -> None:
        alerts.append(
            {
                "part_id": part.id,
                "alert_type": alert_type,
                "severity": severity,
                "title": f"{title}: {part.name}",
                "message": message,
                "affected_projects": list(affected),
            }
        )

    if part.lifecycle_stage == "eol_announced" and part.eol_date:
        days_left = days_until_eol(part, today)
        if days_left < 0:
            alert(
                "eol_imminent",
                "critical",
                "EOL Reached",
                f"{part.name} reached End of Life on {part.eol_date.isoformat()} "
                f"({-days_left} days ago). Immediate action required.",
            )
        elif months_until(today, part.eol_date) >= C.EOL_IMMINENT_MONTHS:
            alert(
                "eol_warning",
                "medium",
                "EOL Warning",
                f"{part.name} will reach End of Life on {part.eol_date.isoformat()}. "
                "Consider finding alternatives.",
            )
        else:
            alert(
                "eol_imminent",
                "high",
                "EOL Imminent",
                f"{part.name} will reach End of Life in {days_left} days. "
                "Immediate action required.",
            )

    if part.last_time_buy_date:
        days_left = (part.last_time_buy_date - today).days
        if 0 <= days_left <= C.LAST_TIME_BUY_WINDOW_DAYS:
            alert(
                "last_time_buy",
                "critical",
                "Last Time Buy",
                f"Last chance to order {part.name}. Last time buy date: "
                f"{part.last_time_buy_date.isoformat()}",
            )

    if part.lifecycle_stage == "obsolete":
        alert(
            "obsolete",
            "critical",
            "Component Obsolete",
            f"{part.name} is now obsolete. Find alternatives immediately.",
        )

    return alerts


class LifecycleMonitor:
    """
    Raises obsolescence alerts, at most one open alert per (part, type).

    Resolving an alert lets the same condition raise a fresh one later.
    """

    def __init__(self) -> None:
        self._open: dict[tuple[str, str], LifecycleAlert] = {}

    @property
    def open_alerts(self) -> list[LifecycleAlert]:
        return list(self._open.values())

    def resolve(self, part_id: str, alert_type: str) -> bool:
        return self._open.pop((part_id, alert_type), None) is not None

    def check(
        self,
        parts: Iterable[PartCatalogEntry],
        today: datetime.date,
        snapshots: Iterable[BomSnapshot] = (),
    ) -> dict:
        """
        Checks every part and records new alerts.

        Returns:
            Counts of parts checked, alerts created and critical parts, plus
            the newly created alerts.
        """
        snapshots = list(snapshots)
        results: dict = {
            "components_checked": 0,
            "alerts_created": 0,
            "critical_issues": 0,
            "alerts": [],
        }

        for part in parts:
            results["components_checked"] += 1
            if urgency_level(part, today) == "critical":
                results["critical_issues"] += 1

            affected = find_affected_projects(part.id, snapshots)
            for alert in generate_alerts_for_part(part, today, affected):
                key = (alert["part_id"], alert["alert_type"])
                if key in self._open:
                    continue
                self._open[key] = alert
                results["alerts"].append(alert)
                results["alerts_created"] += 1

        logger.info(
            f"Lifecycle check: {results['components_checked']} parts, "
            f"{results['alerts_created']} new alerts, {results['critical_issues']} critical"
        )
        return results


def lifecycle_summary(
    parts: Iterable[PartCatalogEntry], today: datetime.date
) -> dict[str, int]:
    """Part counts per lifecycle stage plus the critical count."""
    summary = {stage: 0 for stage in C.LIFECYCLE_STAGES}
    summary["total_components"] = 0
    summary["critical"] = 0
    for part in parts:
        summary["total_components"] += 1
        summary[part.lifecycle_stage] += 1
        if urgency_level(part, today) == "critical":
            summary["critical"] += 1
    return summary


def _spec_similarity(
    original: PartCatalogEntry, alternative: PartCatalogEntry
) -> float:
    orig_specs = original.specifications
    alt_specs = alternative.specifications
    if not orig_specs or not alt_specs:
        return 0.5

    common = set(orig_specs) & set(alt_specs)
    if not common:
        return 0.0
    matches = sum(1 for key in common if orig_specs[key] == alt_specs[key])
    return matches / len(common)


def compatibility_score(
    original: PartCatalogEntry, alternative: PartCatalogEntry
) -> float:
    """
    Estimates how interchangeable two parts are, from 0.0 to 1.0.

    Weights: same package 0.3, same category 0.2, same manufacturer 0.1,
    specification similarity 0.4. Parts without specifications count as a
    neutral 0.5 similarity.
    """
    score = 0.0
    if original.package and original.package == alternative.package:
        score += 0.3
    if original.category and original.category == alternative.category:
        score += 0.2
    if original.manufacturer and original.manufacturer == alternative.manufacturer:
        score += 0.1
    score += _spec_similarity(original, alternative) * 0.4
    return round(min(1.0, score), 4)
