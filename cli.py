import argparse
import datetime
import logging
import os
import sys

from src.bom_core import (
    BomCostAggregator,
    CatalogError,
    ComponentMatcher,
    DuplicateDesignatorError,
    EngineConfig,
    LifecycleMonitor,
    compare_snapshots,
    load_catalog,
    parse_csv_bom,
)
from src.exporters import (
    comparison_markdown,
    generate_comparison_csv,
    generate_resolution_csv,
    generate_suggestions_csv,
)
from src.pdf_generator import generate_cost_report


def load_snapshot(matcher, path, version):
    items, stats = parse_csv_bom(path)
    print(f"📄 {path}: {stats['rows_read']} rows -> {stats['items_created']} items")
    for err in stats["errors"]:
        print(f"   ! {err}")
    try:
        snapshot, report = matcher.resolve_items(items, version=version)
    except DuplicateDesignatorError as e:
        print(f"❌ {path}: {e}")
        sys.exit(1)

    if report["unresolved"]:
        print(f"⚠️  {len(report['unresolved'])} unresolved: {', '.join(report['unresolved'])}")
    else:
        print("✅ All items resolved.")
    return snapshot, report


def write_file(path, content):
    mode = "wb" if isinstance(content, bytes) else "w"
    try:
        if mode == "wb":
            with open(path, mode) as f:
                f.write(content)
        else:
            with open(path, mode, encoding="utf-8") as f:
                f.write(content)
        print(f"✅ {path}")
    except PermissionError:
        print(f"❌ Error: Close {path} first.")


def cmd_compare(args, config, catalog):
    matcher = ComponentMatcher(catalog)
    old_label = os.path.splitext(os.path.basename(args.old))[0]
    new_label = os.path.splitext(os.path.basename(args.new))[0]
    bom1, _ = load_snapshot(matcher, args.old, old_label)
    bom2, _ = load_snapshot(matcher, args.new, new_label)

    comparison = compare_snapshots(bom1, bom2)
    impact = comparison["cost_impact"]
    print("\n--- Comparison ---")
    print(
        f"Added {len(comparison['added'])} | Removed {len(comparison['removed'])} | "
        f"Modified {len(comparison['modified'])} | Unchanged {len(comparison['unchanged'])}"
    )
    print(
        f"Cost: {config.currency}{impact['bom1_total']} -> {config.currency}{impact['bom2_total']} "
        f"({impact['difference']:+}, {impact['percentage_change']}%)"
    )

    os.makedirs(args.out, exist_ok=True)
    write_file(os.path.join(args.out, "comparison.csv"), generate_comparison_csv(comparison))
    write_file(
        os.path.join(args.out, "comparison.md"),
        comparison_markdown(comparison, old_label, new_label, config.currency),
    )


def cmd_analyze(args, config, catalog, today):
    matcher = ComponentMatcher(catalog)
    label = os.path.splitext(os.path.basename(args.bom))[0]
    snapshot, report = load_snapshot(matcher, args.bom, label)

    aggregator = BomCostAggregator(catalog, config, today=today)
    analysis = aggregator.analyze(snapshot)
    summary = analysis["summary"]

    print("\n--- Cost ---")
    for name, group in summary["by_category"].items():
        print(f"   {name:<22} {group['count']:>5}  {config.currency}{group['cost']}")
    print(f"   {'TOTAL':<22} {summary['total_components']:>5}  {config.currency}{summary['total_cost']}")

    if analysis["suggestions"]:
        print(f"\n💡 {len(analysis['suggestions'])} suggestions:")
        for s in analysis["suggestions"]:
            print(f"   [{s['type']}] {s['designator']}: {s['notes']}")

    os.makedirs(args.out, exist_ok=True)
    write_file(os.path.join(args.out, "resolution.csv"), generate_resolution_csv(report))
    write_file(
        os.path.join(args.out, "suggestions.csv"),
        generate_suggestions_csv(analysis["suggestions"]),
    )
    write_file(
        os.path.join(args.out, "cost_report.pdf"),
        generate_cost_report(
            None,
            {label: analysis},
            company_name=config.company_name,
            currency=config.currency,
        ),
    )


def cmd_lifecycle(args, catalog, today):
    results = LifecycleMonitor().check(catalog, today)
    print(
        f"🔎 Checked {results['components_checked']} parts: "
        f"{results['alerts_created']} alerts, {results['critical_issues']} critical"
    )
    for alert in results["alerts"]:
        print(f"   [{alert['severity']}] {alert['title']}: {alert['message']}")


def build_parser():
    parser = argparse.ArgumentParser(description="BOM comparison and cost analysis")
    parser.add_argument("--catalog", required=True, help="Parts catalog CSV")
    parser.add_argument("--alternatives", help="Part alternatives CSV")
    parser.add_argument("--out", default="output", help="Output folder")
    parser.add_argument("--today", help="Reference date (YYYY-MM-DD) for lifecycle checks")
    parser.add_argument("-v", "--verbose", action="store_true")

    sub = parser.add_subparsers(dest="command", required=True)
    compare = sub.add_parser("compare", help="Compare two BOM CSVs")
    compare.add_argument("old")
    compare.add_argument("new")

    analyze = sub.add_parser("analyze", help="Cost rollup and suggestions for one BOM")
    analyze.add_argument("bom")

    sub.add_parser("lifecycle", help="Obsolescence alerts for the catalog")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)

    config = EngineConfig.from_env()
    today = datetime.date.fromisoformat(args.today) if args.today else datetime.date.today()

    try:
        catalog = load_catalog(args.catalog, args.alternatives)
    except (CatalogError, OSError) as e:
        print(f"❌ Catalog: {e}")
        sys.exit(1)

    if args.command == "compare":
        cmd_compare(args, config, catalog)
    elif args.command == "analyze":
        cmd_analyze(args, config, catalog, today)
    else:
        cmd_lifecycle(args, catalog, today)

    print("\nDone.")


if __name__ == "__main__":
    main()
