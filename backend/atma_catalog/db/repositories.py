"""
Repository pattern for catalog data access.
Evaluates store-neutral predicate trees as SQLAlchemy queries and loads the
related rows (images, price modifiers, upcoming instances) the projector needs.
"""

from collections import defaultdict
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging
import math

from sqlalchemy import and_, false, func, not_, or_, select, true
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from atma_catalog.db.models import (
    Image,
    PriceMod,
    Program,
    ProgramInstance,
    Property,
    Retreat,
    RetreatInstance,
)
from atma_catalog.search.geo import haversine_bound
from atma_catalog.search.models import EntityKind, ListingRow, SortDirection, SortKey
from atma_catalog.search.pagination import SortSpec
from atma_catalog.search.predicates import (
    PRICE_TYPE,
    AllOf,
    AnyOf,
    Exists,
    Not,
    NullCheck,
    Predicate,
    QueryPlan,
    RangeFilter,
    SetFilter,
    TextFilter,
    WithinRadius,
    active_price_predicate,
)

logger = logging.getLogger(__name__)

ENTITY_MODELS = {
    EntityKind.RETREAT: Retreat,
    EntityKind.PROGRAM: Program,
    EntityKind.PROPERTY: Property,
}

# Foreign key name on images / price_mods pointing at each kind
OWNER_COLUMN = {
    EntityKind.RETREAT: "retreat_id",
    EntityKind.PROGRAM: "program_id",
    EntityKind.PROPERTY: "property_id",
}

INSTANCE_MODELS = {
    EntityKind.RETREAT: (RetreatInstance, "retreat_id"),
    EntityKind.PROGRAM: (ProgramInstance, "program_id"),
}

PROPERTY_PREFIX = "property."
DEGREES = math.pi / 180


class CatalogUnavailableError(Exception):
    """The catalog store could not answer a query."""


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def haversine_term(origin_lat: float, origin_lng: float, lat_col, lng_col):
    """SQL for the haversine `a` between a fixed origin and coordinate columns."""
    half_d_lat = func.sin((lat_col - origin_lat) * DEGREES / 2)
    half_d_lng = func.sin((lng_col - origin_lng) * DEGREES / 2)
    return (
        half_d_lat * half_d_lat
        + math.cos(math.radians(origin_lat)) * func.cos(lat_col * DEGREES) * half_d_lng * half_d_lng
    )


class PredicateCompiler:
    """Turns a predicate tree into a SQLAlchemy boolean clause for one entity kind."""

    def __init__(self, kind: EntityKind):
        self.kind = kind
        self.model = ENTITY_MODELS[kind]

    def _column(self, name: str, model):
        if name.startswith(PROPERTY_PREFIX):
            if not self.kind.has_instances:
                raise ValueError(f"{self.kind.value} has no parent property field {name!r}")
            model, name = Property, name[len(PROPERTY_PREFIX):]
        column = getattr(model, name, None)
        if column is None:
            raise ValueError(f"Unknown field {name!r} on {model.__tablename__}")
        return column

    def _relation(self, name: str) -> Tuple[Any, Any]:
        if name == "instances" and self.kind in INSTANCE_MODELS:
            rel_model, owner = INSTANCE_MODELS[self.kind]
            return rel_model, getattr(rel_model, owner)
        if name == "price_mods":
            return PriceMod, getattr(PriceMod, OWNER_COLUMN[self.kind])
        if name == "images":
            return Image, getattr(Image, OWNER_COLUMN[self.kind])
        raise ValueError(f"Unknown relation {name!r} for {self.kind.value}")

    def compile(self, node: Predicate, model=None):
        model = model if model is not None else self.model

        if isinstance(node, AllOf):
            if not node.children:
                return true()
            return and_(*[self.compile(child, model) for child in node.children])

        if isinstance(node, AnyOf):
            if not node.children:
                return false()
            return or_(*[self.compile(child, model) for child in node.children])

        if isinstance(node, RangeFilter):
            column = self._column(node.field, model)
            bounds = []
            if node.low is not None:
                bounds.append(column >= node.low)
            if node.high is not None:
                bounds.append(column <= node.high)
            return and_(*bounds) if bounds else true()

        if isinstance(node, SetFilter):
            column = self._column(node.field, model)
            if not node.values:
                return false()
            if all(isinstance(v, str) for v in node.values):
                return func.lower(column).in_(sorted(v.lower() for v in node.values))
            return column.in_(sorted(node.values))

        if isinstance(node, TextFilter):
            pattern = f"%{_escape_like(node.term)}%"
            return or_(*[
                self._column(name, model).ilike(pattern, escape="\\") for name in node.fields
            ])

        if isinstance(node, NullCheck):
            column = self._column(node.field, model)
            return column.is_(None) if node.is_null else column.is_not(None)

        if isinstance(node, Not):
            return not_(self.compile(node.child, model))

        if isinstance(node, WithinRadius):
            lat = self._column(node.lat_field, model)
            lng = self._column(node.lng_field, model)
            bound = haversine_bound(node.miles)
            located = and_(lat.is_not(None), lng.is_not(None))
            if bound >= 1.0:
                return located
            return and_(located, haversine_term(node.lat, node.lng, lat, lng) <= bound)

        if isinstance(node, Exists):
            rel_model, owner = self._relation(node.relation)
            return (
                select(rel_model.id)
                .where(owner == self.model.id, self.compile(node.where, rel_model))
                .exists()
            )

        raise TypeError(f"Unsupported predicate node: {node!r}")


class ListingRepository:
    """
    Repository for catalog listings (properties, retreats, programs).
    Store failures are raised as CatalogUnavailableError, never swallowed.
    """

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Statement helpers
    # ------------------------------------------------------------------
    def _sort_expression(self, plan: QueryPlan, key: SortKey):
        model = ENTITY_MODELS[plan.kind]
        if key == SortKey.NAME:
            return func.lower(model.name)
        if key == SortKey.VERIFIED:
            return model.verified
        if key == SortKey.PRICE:
            compiler = PredicateCompiler(plan.kind)
            owner = getattr(PriceMod, OWNER_COLUMN[plan.kind])
            return (
                select(func.min(PriceMod.value))
                .where(
                    owner == model.id,
                    compiler.compile(active_price_predicate(plan.today, plan.guests), PriceMod),
                )
                .scalar_subquery()
            )
        return model.created_at

    def order_by(self, plan: QueryPlan, sort: SortSpec) -> list:
        """Missing values last in both directions, then id ascending."""
        model = ENTITY_MODELS[plan.kind]
        expr = self._sort_expression(plan, sort.key)
        ordered = expr.asc() if sort.direction == SortDirection.ASC else expr.desc()
        return [expr.is_(None), ordered, model.id.asc()]

    def _with_property(self, stmt, kind: EntityKind):
        if kind.has_instances:
            model = ENTITY_MODELS[kind]
            return stmt.outerjoin(Property, model.property_id == Property.id)
        return stmt

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def count(self, plan: QueryPlan) -> int:
        """Total matches for the plan, independent of paging."""
        model = ENTITY_MODELS[plan.kind]
        clause = PredicateCompiler(plan.kind).compile(plan.count_where)
        stmt = self._with_property(select(func.count(model.id)).select_from(model), plan.kind)
        try:
            return int(self.db.execute(stmt.where(clause)).scalar() or 0)
        except SQLAlchemyError as e:
            logger.error(f"Count query failed for {plan.kind.plural}: {e}")
            raise CatalogUnavailableError(f"Failed to count {plan.kind.plural}") from e

    def fetch_page(self, plan: QueryPlan, sort: SortSpec, offset: int, limit: int) -> List[ListingRow]:
        """One ordered page of rows with images, price modifiers and next instance attached."""
        model = ENTITY_MODELS[plan.kind]
        clause = PredicateCompiler(plan.kind).compile(plan.where)
        if plan.kind.has_instances:
            stmt = select(model, Property)
        else:
            stmt = select(model)
        stmt = (
            self._with_property(stmt, plan.kind)
            .where(clause)
            .order_by(*self.order_by(plan, sort))
            .offset(offset)
            .limit(limit)
        )
        try:
            result = self.db.execute(stmt)
            if plan.kind.has_instances:
                rows = [ListingRow(entity=e, property=p) for e, p in result.all()]
            else:
                rows = [ListingRow(entity=e) for e in result.scalars().all()]
            self._attach_related(plan.kind, rows, plan.today)
        except SQLAlchemyError as e:
            logger.error(f"Page query failed for {plan.kind.plural}: {e}")
            raise CatalogUnavailableError(f"Failed to load {plan.kind.plural}") from e
        logger.debug(f"Page query returned {len(rows)} {plan.kind.plural} (offset={offset}, limit={limit})")
        return rows

    def count_all(self, kind: EntityKind) -> int:
        model = ENTITY_MODELS[kind]
        try:
            return int(self.db.execute(select(func.count(model.id))).scalar() or 0)
        except SQLAlchemyError as e:
            logger.error(f"Count failed for {kind.plural}: {e}")
            raise CatalogUnavailableError(f"Failed to count {kind.plural}") from e

    # ------------------------------------------------------------------
    # Related rows (one query per relation for the whole page)
    # ------------------------------------------------------------------
    def _images_by_owner(self, column_name: str, ids: Sequence[int]) -> Dict[int, List[Image]]:
        grouped: Dict[int, List[Image]] = defaultdict(list)
        if not ids:
            return grouped
        owner = getattr(Image, column_name)
        stmt = select(Image).where(owner.in_(ids)).order_by(owner, Image.order, Image.id)
        for image in self.db.execute(stmt).scalars().all():
            grouped[getattr(image, column_name)].append(image)
        return grouped

    def _price_mods_by_owner(self, column_name: str, ids: Sequence[int]) -> Dict[int, List[PriceMod]]:
        grouped: Dict[int, List[PriceMod]] = defaultdict(list)
        owner = getattr(PriceMod, column_name)
        stmt = select(PriceMod).where(owner.in_(ids), PriceMod.type == PRICE_TYPE).order_by(PriceMod.id)
        for mod in self.db.execute(stmt).scalars().all():
            grouped[getattr(mod, column_name)].append(mod)
        return grouped

    def _next_starts(self, kind: EntityKind, ids: Sequence[int], today: date) -> Dict[int, date]:
        inst_model, owner_name = INSTANCE_MODELS[kind]
        owner = getattr(inst_model, owner_name)
        stmt = (
            select(owner, func.min(inst_model.start_date))
            .where(owner.in_(ids), inst_model.start_date >= today, inst_model.is_full.is_(False))
            .group_by(owner)
        )
        return {owner_id: start for owner_id, start in self.db.execute(stmt).all()}

    def _attach_related(self, kind: EntityKind, rows: List[ListingRow], today: date) -> None:
        if not rows:
            return
        column_name = OWNER_COLUMN[kind]
        ids = [row.entity.id for row in rows]

        images = self._images_by_owner(column_name, ids)
        # Retreats/programs without their own images show their property's
        fallback_ids: List[Optional[int]] = []
        if kind.has_instances:
            fallback_ids = sorted({
                row.entity.property_id for row in rows
                if not images.get(row.entity.id) and row.entity.property_id is not None
            })
        property_images = self._images_by_owner("property_id", fallback_ids)

        price_mods = self._price_mods_by_owner(column_name, ids)
        next_starts = self._next_starts(kind, ids, today) if kind.has_instances else {}

        for row in rows:
            entity_id = row.entity.id
            row.images = images.get(entity_id) or property_images.get(
                getattr(row.entity, "property_id", None), []
            )
            row.price_mods = price_mods.get(entity_id, [])
            row.next_start = next_starts.get(entity_id)
