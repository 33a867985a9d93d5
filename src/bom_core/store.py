"""
SQLAlchemy persistence for the catalog and BOM snapshots.

`BomStore` owns an engine and a session factory. Every operation that writes
more than one row runs inside a single `session.begin()` block, so an import
either persists the snapshot with all of its items or nothing at all.
"""

import datetime
import logging
from collections.abc import Iterable
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    func,
    select,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    Session,
    mapped_column,
    relationship,
    sessionmaker,
)

from src.bom_core.catalog import spec_value_matches
from src.bom_core.errors import BomError, CatalogError, ImportFailedError
from src.bom_core.matcher import ComponentMatcher
from src.bom_core.parser import parse_csv_text
from src.bom_core.types import (
    BomLineItem,
    BomSnapshot,
    ComponentAlternative,
    ParseStats,
    PartCatalogEntry,
    ResolutionReport,
    ResolvedBomItem,
)

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class PartModel(Base):
    """Catalog part. `pk` preserves insertion order for deterministic lookups."""

    __tablename__ = "parts"

    pk: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    part_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    manufacturer_part: Mapped[str] = mapped_column(String(128), index=True, default="")
    name: Mapped[str] = mapped_column(Text, nullable=False)
    package: Mapped[str] = mapped_column(String(64), default="")
    specifications: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 4), default=Decimal("0"))
    stock_quantity: Mapped[int] = mapped_column(Integer, default=0)
    lifecycle_stage: Mapped[str] = mapped_column(String(32), default="active")
    category: Mapped[str | None] = mapped_column(String(64))
    manufacturer: Mapped[str] = mapped_column(String(128), default="")
    status: Mapped[str] = mapped_column(String(32), default="active", index=True)
    eol_date: Mapped[datetime.date | None] = mapped_column(Date)
    last_time_buy_date: Mapped[datetime.date | None] = mapped_column(Date)

    @classmethod
    def from_entry(cls, part: PartCatalogEntry) -> "PartModel":
        return cls(
            part_id=part.id,
            manufacturer_part=part.manufacturer_part,
            name=part.name,
            package=part.package,
            specifications=dict(part.specifications),
            unit_price=part.unit_price,
            stock_quantity=part.stock_quantity,
            lifecycle_stage=part.lifecycle_stage,
            category=part.category,
            manufacturer=part.manufacturer,
            status=part.status,
            eol_date=part.eol_date,
            last_time_buy_date=part.last_time_buy_date,
        )

    def to_entry(self) -> PartCatalogEntry:
        return PartCatalogEntry(
            id=self.part_id,
            manufacturer_part=self.manufacturer_part or "",
            name=self.name,
            package=self.package or "",
            specifications=dict(self.specifications or {}),
            unit_price=self.unit_price or Decimal("0"),
            stock_quantity=self.stock_quantity or 0,
            lifecycle_stage=self.lifecycle_stage,
            category=self.category,
            manufacturer=self.manufacturer or "",
            status=self.status,
            eol_date=self.eol_date,
            last_time_buy_date=self.last_time_buy_date,
        )


class AlternativeModel(Base):
    __tablename__ = "part_alternatives"
    __table_args__ = (UniqueConstraint("original_id", "alternative_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    original_id: Mapped[str] = mapped_column(ForeignKey("parts.part_id"), index=True)
    alternative_id: Mapped[str] = mapped_column(ForeignKey("parts.part_id"))
    compatibility_score: Mapped[float] = mapped_column(Float, nullable=False)
    alternative_type: Mapped[str] = mapped_column(
        String(32), default="functional_equivalent"
    )
    is_recommended: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[str] = mapped_column(Text, default="")

    def to_alternative(self) -> ComponentAlternative:
        return ComponentAlternative(
            original_id=self.original_id,
            alternative_id=self.alternative_id,
            compatibility_score=self.compatibility_score,
            alternative_type=self.alternative_type,
            is_recommended=self.is_recommended,
            notes=self.notes or "",
        )


class SnapshotModel(Base):
    __tablename__ = "bom_snapshots"
    __table_args__ = (UniqueConstraint("project", "version"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project: Mapped[str | None] = mapped_column(String(128), index=True)
    version: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(32), default="pending")
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    items: Mapped[list["SnapshotItemModel"]] = relationship(
        back_populates="snapshot",
        cascade="all, delete-orphan",
        order_by="SnapshotItemModel.id",
    )


class SnapshotItemModel(Base):
    __tablename__ = "bom_snapshot_items"
    __table_args__ = (UniqueConstraint("snapshot_id", "designator"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    snapshot_id: Mapped[int] = mapped_column(ForeignKey("bom_snapshots.id"), index=True)
    designator: Mapped[str] = mapped_column(String(32), nullable=False)
    value: Mapped[str] = mapped_column(Text, default="")
    footprint: Mapped[str] = mapped_column(String(64), default="")
    manufacturer_part: Mapped[str | None] = mapped_column(String(128))
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    notes: Mapped[str | None] = mapped_column(Text)
    part_id: Mapped[str | None] = mapped_column(ForeignKey("parts.part_id"))
    method: Mapped[str] = mapped_column(String(32), nullable=False)
    allocated: Mapped[bool] = mapped_column(Boolean, default=False)

    snapshot: Mapped[SnapshotModel] = relationship(back_populates="items")


class SqlCatalog:
    """
    `PartCatalog` backed by an open session.

    Rows are converted to `PartCatalogEntry` once per catalog instance, so every
    item resolved to the same part shares one entry (and one stock counter).
    """

    def __init__(self, session: Session):
        self.session = session
        self._entries: dict[str, PartCatalogEntry] = {}

    def _entry(self, row: PartModel) -> PartCatalogEntry:
        entry = self._entries.get(row.part_id)
        if entry is None:
            entry = self._entries[row.part_id] = row.to_entry()
        return entry

    def _first_active(self, *criteria) -> PartCatalogEntry | None:
        stmt = (
            select(PartModel)
            .where(PartModel.status == "active", *criteria)
            .order_by(PartModel.pk)
            .limit(1)
        )
        row = self.session.scalars(stmt).first()
        return self._entry(row) if row else None

    def get(self, part_id: str) -> PartCatalogEntry | None:
        row = self.session.scalars(
            select(PartModel).where(PartModel.part_id == part_id)
        ).first()
        return self._entry(row) if row else None

    def find_by_manufacturer_part(self, code: str) -> PartCatalogEntry | None:
        return self._first_active(PartModel.manufacturer_part == code)

    def find_by_name_and_footprint(
        self, substr: str, footprint: str
    ) -> PartCatalogEntry | None:
        escaped = substr.replace("\\", "\\\\").replace("%", r"\%").replace("_", r"\_")
        pattern = f"%{escaped}%"
        return self._first_active(
            PartModel.name.ilike(pattern, escape="\\"), PartModel.package == footprint
        )

    def find_by_spec_value(self, value: float, unit: str) -> PartCatalogEntry | None:
        # JSON comparisons are not portable, so filter in Python.
        rows = self.session.scalars(
            select(PartModel).where(PartModel.status == "active").order_by(PartModel.pk)
        )
        for row in rows:
            if spec_value_matches(row.specifications or {}, value, unit):
                return self._entry(row)
        return None

    def alternatives_for(
        self,
        part_id: str,
        min_compatibility: float | None = None,
        alternative_type: str | None = None,
        recommended_only: bool = False,
    ) -> list[ComponentAlternative]:
        stmt = select(AlternativeModel).where(AlternativeModel.original_id == part_id)
        if min_compatibility is not None:
            stmt = stmt.where(AlternativeModel.compatibility_score >= min_compatibility)
        if alternative_type is not None:
            stmt = stmt.where(AlternativeModel.alternative_type == alternative_type)
        if recommended_only:
            stmt = stmt.where(AlternativeModel.is_recommended.is_(True))
        stmt = stmt.order_by(
            AlternativeModel.compatibility_score.desc(),
            AlternativeModel.is_recommended.desc(),
            AlternativeModel.id,
        )
        return [row.to_alternative() for row in self.session.scalars(stmt)]

    def find_alternatives(self, part_id: str, min_score: float) -> list[PartCatalogEntry]:
        found = []
        for alt in self.alternatives_for(part_id, min_compatibility=min_score):
            part = self.get(alt.alternative_id)
            if part is not None and part.is_active:
                found.append(part)
        return found


def _select_snapshot(version: str, project: str | None):
    project_clause = (
        SnapshotModel.project.is_(None)
        if project is None
        else SnapshotModel.project == project
    )
    return select(SnapshotModel).where(project_clause, SnapshotModel.version == version)


class BomStore:
    """
    Database access for catalog and snapshots.

    Args:
        url: SQLAlchemy database URL. Defaults to an in-memory SQLite database.
        echo: Log emitted SQL.
    """

    def __init__(self, url: str = "sqlite://", echo: bool = False):
        self.engine = create_engine(url, echo=echo)
        self.Session = sessionmaker(self.engine, expire_on_commit=False)
        Base.metadata.create_all(self.engine)

    # --- Catalog ---

    def add_parts(self, parts: Iterable[PartCatalogEntry]) -> int:
        """Inserts parts in one transaction. Raises CatalogError on conflicts."""
        count = 0
        try:
            with self.Session.begin() as session:
                for part in parts:
                    session.add(PartModel.from_entry(part))
                    count += 1
        except SQLAlchemyError as e:
            logger.error(f"Catalog insert failed: {e}")
            raise CatalogError(f"Could not store parts: {e}") from e
        logger.info(f"Stored {count} catalog parts")
        return count

    def add_alternatives(self, alternatives: Iterable[ComponentAlternative]) -> int:
        count = 0
        try:
            with self.Session.begin() as session:
                known = set(session.scalars(select(PartModel.part_id)))
                for alt in alternatives:
                    for part_id in (alt.original_id, alt.alternative_id):
                        if part_id not in known:
                            raise CatalogError(
                                f"Alternative references unknown part {part_id}"
                            )
                    session.add(
                        AlternativeModel(
                            original_id=alt.original_id,
                            alternative_id=alt.alternative_id,
                            compatibility_score=alt.compatibility_score,
                            alternative_type=alt.alternative_type,
                            is_recommended=alt.is_recommended,
                            notes=alt.notes,
                        )
                    )
                    count += 1
        except SQLAlchemyError as e:
            raise CatalogError(f"Could not store alternatives: {e}") from e
        return count

    def parts(self) -> list[PartCatalogEntry]:
        with self.Session() as session:
            rows = session.scalars(select(PartModel).order_by(PartModel.pk))
            return [row.to_entry() for row in rows]

    # --- Snapshots ---

    def import_bom(
        self,
        text: str,
        version: str,
        project: str | None = None,
        source_name: str = "BOM",
    ) -> tuple[BomSnapshot, ResolutionReport, ParseStats]:
        """
        Parses, resolves and persists a CSV BOM as one snapshot.

        Row-level problems stay in the returned ParseStats. Anything that
        prevents the snapshot from being stored (duplicate designators, an
        existing project/version pair, database errors) rolls back the whole
        import.

        Raises:
            ImportFailedError: Nothing was committed. The cause is chained.
        """
        items, stats = parse_csv_text(text, source_name=source_name)

        try:
            with self.Session.begin() as session:
                if session.scalars(_select_snapshot(version, project)).first():
                    raise BomError(f"Snapshot {project} v{version} already exists")
                matcher = ComponentMatcher(SqlCatalog(session))
                snapshot, report = matcher.resolve_items(
                    items, version=version, project=project
                )
                record = SnapshotModel(
                    project=project,
                    version=version,
                    status=snapshot.status,
                    created_at=snapshot.created_at.astimezone(datetime.timezone.utc),
                )
                for resolved in snapshot:
                    record.items.append(
                        SnapshotItemModel(
                            designator=resolved.designator,
                            value=resolved.item.value,
                            footprint=resolved.item.footprint,
                            manufacturer_part=resolved.item.manufacturer_part,
                            quantity=resolved.quantity,
                            notes=resolved.item.notes,
                            part_id=resolved.part_id,
                            method=resolved.method,
                            allocated=resolved.allocated,
                        )
                    )
                session.add(record)
        except (BomError, SQLAlchemyError) as e:
            logger.error(f"Import of {source_name} ({project} v{version}) rolled back: {e}")
            raise ImportFailedError(f"Import of {source_name} failed: {e}") from e

        logger.info(
            f"Imported {source_name} as {project} v{version}: {len(snapshot)} items"
        )
        return snapshot, report, stats

    def load_snapshot(self, version: str, project: str | None = None) -> BomSnapshot:
        """Rebuilds a stored snapshot with the current catalog data of its parts."""
        with self.Session() as session:
            record = session.scalars(_select_snapshot(version, project)).first()
            if record is None:
                raise KeyError(f"No snapshot {project} v{version}")

            catalog = SqlCatalog(session)
            items = []
            for row in record.items:
                item = BomLineItem(
                    reference=row.designator,
                    value=row.value,
                    footprint=row.footprint,
                    manufacturer_part=row.manufacturer_part,
                    quantity=row.quantity,
                    notes=row.notes,
                )
                part = catalog.get(row.part_id) if row.part_id else None
                items.append(
                    ResolvedBomItem(
                        item=item, part=part, method=row.method, allocated=row.allocated
                    )
                )

            # SQLite drops the offset; stored values are UTC.
            created_at = record.created_at
            if created_at is not None and created_at.tzinfo is None:
                created_at = created_at.replace(tzinfo=datetime.timezone.utc)

            snapshot = BomSnapshot(
                items,
                version=record.version,
                project=record.project,
                created_at=created_at,
            )
            snapshot.status = record.status
            return snapshot

    def list_snapshots(self, project: str | None = None) -> list[tuple[str | None, str]]:
        """(project, version) pairs in import order."""
        with self.Session() as session:
            stmt = select(SnapshotModel.project, SnapshotModel.version).order_by(
                SnapshotModel.id
            )
            if project is not None:
                stmt = stmt.where(SnapshotModel.project == project)
            return [(p, v) for p, v in session.execute(stmt)]

    def save_allocation(self, snapshot: BomSnapshot) -> None:
        """
        Writes allocation flags, snapshot status and the stock levels of the
        snapshot's parts in one transaction.
        """
        with self.Session.begin() as session:
            record = session.scalars(
                _select_snapshot(snapshot.version, snapshot.project)
            ).one()
            record.status = snapshot.status

            flags = {r.designator: r.allocated for r in snapshot}
            for row in record.items:
                row.allocated = flags.get(row.designator, row.allocated)

            stock = {r.part.id: r.part.stock_quantity for r in snapshot if r.part}
            for part_row in session.scalars(
                select(PartModel).where(PartModel.part_id.in_(stock))
            ):
                part_row.stock_quantity = stock[part_row.part_id]
