import os

import pytest

import cli
from conftest import DATA_DIR

CATALOG = os.path.join(DATA_DIR, "sample_catalog.csv")
ALTERNATIVES = os.path.join(DATA_DIR, "sample_alternatives.csv")
V1 = os.path.join(DATA_DIR, "sample_bom_v1.csv")
V2 = os.path.join(DATA_DIR, "sample_bom_v2.csv")


def _run(tmp_path, *args):
    cli.main(
        [
            "--catalog",
            CATALOG,
            "--alternatives",
            ALTERNATIVES,
            "--out",
            str(tmp_path),
            "--today",
            "2026-01-15",
            *args,
        ]
    )


def test_compare_writes_reports(tmp_path, capsys):
    _run(tmp_path, "compare", V1, V2)
    out = capsys.readouterr().out

    assert "Added 2 | Removed 1 | Modified 2 | Unchanged 5" in out
    assert "1 unresolved: D1" in out
    assert (tmp_path / "comparison.csv").exists()
    md = (tmp_path / "comparison.md").read_text(encoding="utf-8")
    assert "# BOM Comparison: sample_bom_v1 → sample_bom_v2" in md


def test_analyze_writes_reports(tmp_path, capsys):
    _run(tmp_path, "analyze", V1)
    out = capsys.readouterr().out

    assert "TOTAL" in out
    assert "$12.63" in out
    assert "[cost_optimization] U1" in out
    assert (tmp_path / "cost_report.pdf").read_bytes().startswith(b"%PDF")
    assert (tmp_path / "resolution.csv").exists()
    assert (tmp_path / "suggestions.csv").exists()


def test_lifecycle(tmp_path, capsys):
    _run(tmp_path, "lifecycle")
    out = capsys.readouterr().out

    assert "Checked 8 parts: 1 alerts, 0 critical" in out
    assert "EOL Warning: LM358 Dual Op-Amp" in out


def test_missing_catalog_exits(tmp_path, capsys):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--catalog", str(tmp_path / "nope.csv"), "lifecycle"])
    assert excinfo.value.code == 1
    assert "Catalog" in capsys.readouterr().out


def test_duplicate_designators_exit(tmp_path, capsys):
    bom = tmp_path / "dup.csv"
    bom.write_text("Reference,Value\nR1-R2,10k\nR2,4.7k\n", encoding="utf-8")

    with pytest.raises(SystemExit):
        _run(tmp_path, "analyze", str(bom))
    assert "Duplicate designators: R2" in capsys.readouterr().out
