def test_package_structure_is_acyclic() -> None:
    """
    Verifies that the package structure is sound and free of circular imports.

    Ensures that `src.bom_core` can be imported and that key public API entry
    points (like `parse_csv_text` and `compare_snapshots`) are correctly exposed.
    """
    import src.bom_core

    # Basic check to ensure it's a valid package
    assert hasattr(src.bom_core, "__path__")

    # Check that key functions are actually exposed
    assert hasattr(src.bom_core, "parse_csv_text")
    assert hasattr(src.bom_core, "ComponentMatcher")
    assert hasattr(src.bom_core, "compare_snapshots")
    assert hasattr(src.bom_core, "BomCostAggregator")
    assert hasattr(src.bom_core, "BomStore")


def test_public_api_matches_all() -> None:
    import src.bom_core

    missing = [name for name in src.bom_core.__all__ if not hasattr(src.bom_core, name)]
    assert missing == []


def test_surface_modules_import() -> None:
    """The exporters, PDF engine and CLI sit outside the package but use it."""
    import cli
    import src.exporters
    import src.pdf_generator

    assert callable(cli.main)
    assert callable(src.exporters.generate_comparison_csv)
    assert callable(src.pdf_generator.generate_cost_report)
