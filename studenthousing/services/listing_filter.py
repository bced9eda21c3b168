"""In-memory search filters over a batch of available listings."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Iterable, List, Optional, Tuple

MAX_LOCATION_LENGTH = 200

# Named shortcuts and the amenities each one requires
QUICK_FILTERS = {
    'pet_friendly': ('pets_allowed',),
    'furnished': ('furnished',),
    'internet_included': ('wifi',),
    'parking': ('parking',),
    'secure': ('security',),
}


@dataclass(frozen=True)
class Listing:
    """A property as shown on search results"""

    id: int
    owner_id: int
    title: str
    property_type: str
    price: float
    address: str
    neighborhood: str
    city: str
    state: str
    amenities: Tuple[str, ...] = ()
    images: Tuple[str, ...] = ()
    available: bool = True
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    available_spots: Optional[int] = None
    created_at: Optional[str] = None

    @classmethod
    def from_record(cls, record) -> "Listing":
        """Map a Property row to a Listing"""
        return cls(
            id=record.id,
            owner_id=record.owner_id,
            title=record.title,
            property_type=record.property_type,
            price=float(record.price) if record.price is not None else 0.0,
            address=record.address or '',
            neighborhood=record.neighborhood or '',
            city=record.city or '',
            state=record.state or '',
            amenities=tuple(record.amenities or ()),
            images=tuple(record.images or ()),
            available=bool(record.available),
            bedrooms=record.bedrooms,
            bathrooms=record.bathrooms,
            available_spots=record.available_spots,
            created_at=record.created_at.isoformat() if record.created_at else None,
        )

    @property
    def location_fields(self) -> Tuple[str, ...]:
        return (self.address, self.neighborhood, self.city, self.state)

    @property
    def location(self) -> str:
        return f"{self.neighborhood}, {self.city} - {self.state}"

    def to_dict(self):
        return {
            'id': self.id,
            'owner_id': self.owner_id,
            'title': self.title,
            'property_type': self.property_type,
            'price': self.price,
            'address': self.address,
            'neighborhood': self.neighborhood,
            'city': self.city,
            'state': self.state,
            'location': self.location,
            'amenities': list(self.amenities),
            'images': list(self.images),
            'image': self.images[0] if self.images else None,
            'available': self.available,
            'bedrooms': self.bedrooms,
            'bathrooms': self.bathrooms,
            'available_spots': self.available_spots,
            'created_at': self.created_at,
        }


def _split(values: Iterable[str]) -> FrozenSet[str]:
    items = set()
    for value in values:
        for part in (value or '').split(','):
            part = part.strip()
            if part:
                items.add(part)
    return frozenset(items)


@dataclass(frozen=True)
class ListingFilter:
    """Search criteria; every active criterion must hold"""

    location: str = ''
    types: FrozenSet[str] = field(default_factory=frozenset)
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    amenities: FrozenSet[str] = field(default_factory=frozenset)
    quick_filters: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_args(cls, args) -> "ListingFilter":
        """Build from query parameters; list params repeat or are comma separated"""
        return cls(
            location=(args.get('location') or '').strip()[:MAX_LOCATION_LENGTH],
            types=_split(args.getlist('type')),
            min_price=args.get('min_price', type=float),
            max_price=args.get('max_price', type=float),
            amenities=_split(args.getlist('amenities')),
            quick_filters=_split(args.getlist('quick')),
        )

    @property
    def required_amenities(self) -> FrozenSet[str]:
        required = set(self.amenities)
        for name in self.quick_filters:
            required.update(QUICK_FILTERS.get(name, ()))
        return frozenset(required)

    def predicates(self) -> List[Callable[[Listing], bool]]:
        checks = []

        if self.location:
            needle = self.location.lower()
            checks.append(lambda l: any(needle in (f or '').lower() for f in l.location_fields))

        if self.types:
            checks.append(lambda l: l.property_type in self.types)

        if self.min_price is not None:
            checks.append(lambda l: l.price >= self.min_price)

        if self.max_price is not None:
            checks.append(lambda l: l.price <= self.max_price)

        required = self.required_amenities
        if required:
            checks.append(lambda l: required.issubset(l.amenities))

        return checks

    def is_empty(self) -> bool:
        return not self.predicates()

    def matches(self, listing: Listing) -> bool:
        return all(check(listing) for check in self.predicates())

    def to_dict(self):
        return {
            'location': self.location,
            'types': sorted(self.types),
            'min_price': self.min_price,
            'max_price': self.max_price,
            'amenities': sorted(self.amenities),
            'quick_filters': sorted(self.quick_filters),
        }


def apply_filters(listings: Iterable[Listing], criteria: ListingFilter) -> List[Listing]:
    """Listings satisfying every active criterion, in their original order"""
    checks = criteria.predicates()
    return [listing for listing in listings if all(check(listing) for check in checks)]
