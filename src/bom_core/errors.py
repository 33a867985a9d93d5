"""
Exception taxonomy for the BOM engine.

Row-level problems (missing designators, bad ranges, unresolved parts) are
reported as diagnostics and never raised past the parser or matcher. The
exceptions here cover precondition violations and hard failures.
"""


class BomError(Exception):
    """Base class for all BOM engine errors."""


class InvalidRangeError(BomError):
    """A designator range that cannot be expanded (e.g. 'C5-C1')."""

    def __init__(self, token: str, reason: str):
        self.token = token
        self.reason = reason
        super().__init__(f"{token}: {reason}")


class DuplicateDesignatorError(BomError):
    """A snapshot was built with the same designator more than once."""

    def __init__(self, designators: list[str]):
        self.designators = designators
        super().__init__(f"Duplicate designators: {', '.join(designators)}")


class CatalogError(BomError):
    """The part catalog is malformed or could not be read."""


class ImportFailedError(BomError):
    """A BOM import was rolled back. The underlying cause is chained."""
