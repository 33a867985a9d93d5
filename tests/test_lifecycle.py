import datetime

import pytest

from conftest import make_part, make_snapshot
from src.bom_core import LifecycleMonitor, compatibility_score, lifecycle_summary, urgency_level
from src.bom_core.lifecycle import (
    find_affected_projects,
    generate_alerts_for_part,
    is_at_risk,
    months_until,
)

TODAY = datetime.date(2026, 1, 15)


@pytest.mark.parametrize(
    "target, expected",
    [
        (datetime.date(2026, 7, 15), 6),
        (datetime.date(2026, 7, 14), 5),
        (datetime.date(2026, 1, 31), 0),
        (datetime.date(2025, 12, 15), -1),
        (datetime.date(2025, 12, 20), 0),
    ],
)
def test_months_until(target, expected):
    assert months_until(TODAY, target) == expected


@pytest.mark.parametrize(
    "stage, eol_date, expected",
    [
        ("active", None, "low"),
        ("nrnd", None, "medium"),
        ("eol_announced", None, "medium"),
        ("eol_announced", datetime.date(2027, 6, 1), "medium"),
        ("eol_announced", datetime.date(2026, 4, 1), "high"),
        ("eol_announced", datetime.date(2025, 12, 1), "critical"),
        ("eol", None, "critical"),
        ("obsolete", None, "critical"),
    ],
)
def test_urgency_level(stage, eol_date, expected):
    part = make_part("P", lifecycle_stage=stage, eol_date=eol_date)
    assert urgency_level(part, TODAY) == expected


def test_at_risk_stages():
    assert is_at_risk(make_part("P", lifecycle_stage="eol"))
    assert not is_at_risk(make_part("P", lifecycle_stage="nrnd"))


def test_eol_warning_and_imminent_alerts():
    far = make_part("FAR", name="LM358", lifecycle_stage="eol_announced",
                    eol_date=datetime.date(2027, 3, 1))
    near = make_part("NEAR", name="TL072", lifecycle_stage="eol_announced",
                     eol_date=datetime.date(2026, 2, 14))

    (warning,) = generate_alerts_for_part(far, TODAY)
    assert warning["alert_type"] == "eol_warning"
    assert warning["severity"] == "medium"
    assert "2027-03-01" in warning["message"]

    (imminent,) = generate_alerts_for_part(near, TODAY, ["Amp"])
    assert imminent["alert_type"] == "eol_imminent"
    assert imminent["severity"] == "high"
    assert "30 days" in imminent["message"]
    assert imminent["affected_projects"] == ["Amp"]


def test_passed_eol_date_is_critical():
    part = make_part("LATE", name="NE555", lifecycle_stage="eol_announced",
                     eol_date=datetime.date(2026, 1, 5))

    (alert,) = generate_alerts_for_part(part, TODAY)
    assert alert["alert_type"] == "eol_imminent"
    assert alert["severity"] == urgency_level(part, TODAY) == "critical"
    assert alert["title"] == "EOL Reached: NE555"
    assert "reached End of Life on 2026-01-05 (10 days ago)" in alert["message"]
    assert "-10" not in alert["message"]


def test_last_time_buy_and_obsolete_alerts():
    part = make_part(
        "OLD",
        lifecycle_stage="obsolete",
        last_time_buy_date=datetime.date(2026, 2, 1),
    )
    alerts = generate_alerts_for_part(part, TODAY)
    assert [(a["alert_type"], a["severity"]) for a in alerts] == [
        ("last_time_buy", "critical"),
        ("obsolete", "critical"),
    ]

    passed = make_part("GONE", last_time_buy_date=datetime.date(2026, 1, 1))
    assert generate_alerts_for_part(passed, TODAY) == []


def test_monitor_keeps_one_open_alert_per_type():
    part = make_part("OLD", lifecycle_stage="obsolete")
    monitor = LifecycleMonitor()

    first = monitor.check([part], TODAY)
    assert first["alerts_created"] == 1
    assert first["critical_issues"] == 1

    second = monitor.check([part], TODAY)
    assert second["alerts_created"] == 0
    assert len(monitor.open_alerts) == 1

    assert monitor.resolve("OLD", "obsolete")
    assert not monitor.resolve("OLD", "obsolete")
    assert monitor.check([part], TODAY)["alerts_created"] == 1


def test_monitor_reports_affected_projects():
    part = make_part("OLD", lifecycle_stage="obsolete")
    snaps = [
        make_snapshot([("U1", part, 1)], project="Fuzz"),
        make_snapshot([("U1", part, 1)], project="Amp"),
        make_snapshot([("U1", make_part("OTHER"), 1)], project="Delay"),
    ]
    assert find_affected_projects("OLD", snaps) == ["Amp", "Fuzz"]

    results = LifecycleMonitor().check([part], TODAY, snaps)
    assert results["alerts"][0]["affected_projects"] == ["Amp", "Fuzz"]


def test_sample_catalog_lifecycle(sample_catalog):
    results = LifecycleMonitor().check(sample_catalog, TODAY)

    assert results["components_checked"] == 8
    assert results["critical_issues"] == 0
    assert [(a["part_id"], a["alert_type"]) for a in results["alerts"]] == [
        ("IC-LM358", "eol_warning")
    ]

    summary = lifecycle_summary(sample_catalog, TODAY)
    assert summary["total_components"] == 8
    assert summary["active"] == 6
    assert summary["nrnd"] == 1
    assert summary["eol_announced"] == 1
    assert summary["critical"] == 0


def test_compatibility_score():
    base = make_part(
        "A", package="DIP-8", category="ICs", manufacturer="TI",
        specifications={"value": 1.0, "unit": "V"},
    )
    twin = make_part(
        "B", package="DIP-8", category="ICs", manufacturer="TI",
        specifications={"value": 1.0, "unit": "V"},
    )
    stranger = make_part(
        "C", package="SOIC-8", category="ICs", manufacturer="ST",
        specifications={"value": 2.0, "unit": "V"},
    )
    bare = make_part("D", package="DIP-8")

    assert compatibility_score(base, twin) == 1.0
    assert compatibility_score(base, stranger) == 0.4
    # Missing specifications count as a neutral half match.
    assert compatibility_score(base, bare) == 0.5
