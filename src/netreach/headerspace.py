"""Header spaces: sets of packet header valuations.

The analysis engine only relies on ``union``, ``intersect``, ``complement``,
``is_empty`` and equality, plus a domain handle exposing ``empty()`` and
``full()``. Header rewrites additionally use ``erase(field)``, which forgets
the value of one field.

Two domains implement this interface:

* ``SetDomain`` / ``SetHeaderSpace`` (here): explicit finite sets of header
  tuples. Exact and easy to inspect, only usable for a handful of bits.
* ``BddPacket`` / ``BddHeaderSpace`` (``netreach.bdd_packet``): BDD-backed.
"""
from __future__ import annotations
import itertools


class HeaderSpace:
    """A set of packet headers. Values are immutable."""

    def union(self, other: HeaderSpace) -> HeaderSpace:
        raise NotImplementedError

    def intersect(self, other: HeaderSpace) -> HeaderSpace:
        raise NotImplementedError

    def complement(self) -> HeaderSpace:
        raise NotImplementedError

    def is_empty(self) -> bool:
        raise NotImplementedError

    def erase(self, field: str) -> HeaderSpace:
        """Existentially forget ``field``: every value of it becomes possible."""
        raise NotImplementedError

    def count(self) -> int:
        """Number of concrete headers in this set."""
        raise NotImplementedError

    def __or__(self, other: HeaderSpace) -> HeaderSpace:
        return self.union(other)

    def __and__(self, other: HeaderSpace) -> HeaderSpace:
        return self.intersect(other)

    def __invert__(self) -> HeaderSpace:
        return self.complement()

    def __sub__(self, other: HeaderSpace) -> HeaderSpace:
        return self.intersect(other.complement())

    def is_subset(self, other: HeaderSpace) -> bool:
        return (self - other).is_empty()

    def overlaps(self, other: HeaderSpace) -> bool:
        return not self.intersect(other).is_empty()


def check_field_value(field: str, width: int, value: int):
    """Reject values that do not fit in an unsigned ``width``-bit field."""
    if not 0 <= value < (1 << width):
        raise ValueError(
            f"Value {value} out of range for {width}-bit field '{field}'"
        )


def prefix_bounds(width: int, value: int, length: int) -> tuple[int, int]:
    """Return the (lo, hi) value range covered by ``value/length``."""
    if not 0 <= length <= width:
        raise ValueError(f"Prefix length {length} out of range for {width}-bit field")
    host_bits = width - length
    host_mask = (1 << host_bits) - 1
    lo = value & ~host_mask & ((1 << width) - 1)
    return lo, lo | host_mask


# ---------------------------------------------------------------------------
# Finite-set domain
# ---------------------------------------------------------------------------

class SetDomain:
    """Explicit-set header domain over a few small unsigned fields.

    A header is a tuple with one integer per field, in declaration order.
    """

    def __init__(self, fields: dict[str, int]):
        if not fields:
            raise ValueError("A header domain needs at least one field")
        for name, width in fields.items():
            if width < 1:
                raise ValueError(f"Field '{name}' must have a positive width, got {width}")
        self.fields = dict(fields)
        self.field_names = list(fields)
        self._index = {name: i for i, name in enumerate(self.field_names)}
        self.universe = frozenset(
            itertools.product(*(range(1 << w) for w in self.fields.values()))
        )

    def empty(self) -> SetHeaderSpace:
        return SetHeaderSpace(self, frozenset())

    def full(self) -> SetHeaderSpace:
        return SetHeaderSpace(self, self.universe)

    def field_index(self, field: str) -> int:
        if field not in self._index:
            raise ValueError(f"Unknown header field: {field}")
        return self._index[field]

    def equals(self, field: str, value: int) -> SetHeaderSpace:
        return self.in_range(field, value, value)

    def in_range(self, field: str, lo: int, hi: int) -> SetHeaderSpace:
        i = self.field_index(field)
        check_field_value(field, self.fields[field], lo)
        check_field_value(field, self.fields[field], hi)
        return SetHeaderSpace(
            self, frozenset(h for h in self.universe if lo <= h[i] <= hi)
        )

    def prefix(self, field: str, value: int, length: int) -> SetHeaderSpace:
        self.field_index(field)
        lo, hi = prefix_bounds(self.fields[field], value, length)
        return self.in_range(field, lo, hi)

    def header(self, **values: int) -> SetHeaderSpace:
        """The singleton set holding one concrete header."""
        missing = set(self.field_names) - set(values)
        if missing:
            raise ValueError(f"Missing header fields: {sorted(missing)}")
        for name, value in values.items():
            check_field_value(name, self.fields[name], value)
        return SetHeaderSpace(
            self, frozenset([tuple(values[name] for name in self.field_names)])
        )

    def __repr__(self):
        return f"SetDomain({self.fields})"


class SetHeaderSpace(HeaderSpace):
    """A header space held as an explicit frozenset of header tuples."""

    def __init__(self, domain: SetDomain, headers: frozenset):
        self.domain = domain
        self.headers = headers

    def union(self, other):
        return SetHeaderSpace(self.domain, self.headers | other.headers)

    def intersect(self, other):
        return SetHeaderSpace(self.domain, self.headers & other.headers)

    def complement(self):
        return SetHeaderSpace(self.domain, self.domain.universe - self.headers)

    def is_empty(self) -> bool:
        return not self.headers

    def erase(self, field):
        i = self.domain.field_index(field)
        rest = {h[:i] + h[i + 1:] for h in self.headers}
        return SetHeaderSpace(
            self.domain,
            frozenset(h for h in self.domain.universe if h[:i] + h[i + 1:] in rest),
        )

    def count(self) -> int:
        return len(self.headers)

    def as_dicts(self) -> list[dict[str, int]]:
        """Concrete headers as field dicts, in sorted order."""
        return [dict(zip(self.domain.field_names, h)) for h in sorted(self.headers)]

    def __eq__(self, other):
        if not isinstance(other, SetHeaderSpace):
            return NotImplemented
        return self.domain is other.domain and self.headers == other.headers

    def __hash__(self):
        return hash(self.headers)

    def __repr__(self):
        return f"SetHeaderSpace({len(self.headers)} headers)"
