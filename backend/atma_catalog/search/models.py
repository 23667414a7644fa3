"""
Catalog search value types.

Everything here is built per request and thrown away after the response:
the validated filter values, the listing query, and the projected items.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterator, List, Mapping, Optional, Union


class EntityKind(str, Enum):
    """The three searchable catalog categories."""
    RETREAT = "retreat"
    PROGRAM = "program"
    PROPERTY = "property"

    @property
    def plural(self) -> str:
        return f"{self.value}s" if self != EntityKind.PROPERTY else "properties"

    @property
    def has_instances(self) -> bool:
        return self in (EntityKind.RETREAT, EntityKind.PROGRAM)

    @classmethod
    def from_segment(cls, segment: str) -> Optional["EntityKind"]:
        """Map a URL segment ("retreats", "property", ...) to a kind."""
        segment = (segment or "").strip().lower()
        for kind in cls:
            if segment in (kind.value, kind.plural):
                return kind
        return None


class SortKey(str, Enum):
    NAME = "name"
    PRICE = "price"
    VERIFIED = "verified"
    CREATED = "created"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


# ---------------------------------------------------------------------------
# Filter values
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DateRange:
    start: date
    end: date


@dataclass(frozen=True)
class NumericRange:
    low: int
    high: int


@dataclass(frozen=True)
class CategorySet:
    values: FrozenSet[str]


@dataclass(frozen=True)
class TextTerm:
    text: str


@dataclass(frozen=True)
class Flag:
    value: bool = True


@dataclass(frozen=True)
class GeoRadius:
    """Origin coordinates in degrees and a search radius in miles."""
    lat: float
    lng: float
    miles: float


FilterValue = Union[DateRange, NumericRange, CategorySet, TextTerm, Flag, GeoRadius]


@dataclass(frozen=True)
class FilterSet:
    """
    Validated filters keyed by logical name ("dates", "guests", "category", ...).
    Only filters that parsed cleanly are present.
    """
    filters: Mapping[str, FilterValue] = field(default_factory=dict)

    def get(self, name: str) -> Optional[FilterValue]:
        return self.filters.get(name)

    def names(self) -> List[str]:
        return sorted(self.filters)

    def __contains__(self, name: object) -> bool:
        return name in self.filters

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self.filters)


# ---------------------------------------------------------------------------
# Query and result
# ---------------------------------------------------------------------------

MAX_PAGE_SIZE = 100
# Keeps (page - 1) * page_size inside a signed 32-bit offset
MAX_PAGE = (2 ** 31 - 1) // MAX_PAGE_SIZE


@dataclass(frozen=True)
class ListingQuery:
    kind: EntityKind
    filters: FilterSet = field(default_factory=FilterSet)
    page: int = 1
    page_size: int = 10
    sort_key: SortKey = SortKey.CREATED
    sort_direction: SortDirection = SortDirection.DESC

    def __post_init__(self):
        if not 1 <= self.page <= MAX_PAGE:
            raise ValueError(f"page must be within 1..{MAX_PAGE}, got {self.page}")
        if not 1 <= self.page_size <= MAX_PAGE_SIZE:
            raise ValueError(f"page_size must be within 1..{MAX_PAGE_SIZE}, got {self.page_size}")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass(frozen=True)
class PriceSummary:
    """Lowest active base price, or explicitly unavailable."""
    available: bool
    amount: Optional[int] = None
    currency: Optional[str] = None

    @classmethod
    def unavailable(cls) -> "PriceSummary":
        return cls(available=False)

    @property
    def label(self) -> str:
        if not self.available:
            return "Price unavailable"
        return f"From {self.amount:,} {self.currency}"


@dataclass
class ListingRow:
    """One store row plus the related records the projector needs."""
    entity: Any
    property: Any = None
    images: List[Any] = field(default_factory=list)
    price_mods: List[Any] = field(default_factory=list)
    next_start: Optional[date] = None


@dataclass(frozen=True)
class ListingItem:
    id: int
    kind: EntityKind
    name: str
    location_label: str
    image: str
    verified: bool
    price: PriceSummary
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ListingResult:
    kind: EntityKind
    items: List[ListingItem]
    total_count: int
    page: int
    page_size: int
    sort_key: SortKey = SortKey.CREATED
    sort_direction: SortDirection = SortDirection.DESC

    @property
    def total_pages(self) -> int:
        return (self.total_count + self.page_size - 1) // self.page_size

    @property
    def is_empty(self) -> bool:
        return self.total_count == 0
