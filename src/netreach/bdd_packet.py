"""BDD-backed header spaces using dd.autoref for the packet header encoding."""
from __future__ import annotations
import ipaddress
from dataclasses import dataclass
import dd.autoref as _bdd
from netreach.headerspace import HeaderSpace, check_field_value, prefix_bounds


DEFAULT_FIELDS = {
    "dst_ip": 32,
    "src_ip": 32,
    "dst_port": 16,
    "src_port": 16,
    "ip_protocol": 8,
}


@dataclass
class FieldEncoding:
    """Binary encoding info for one header field."""
    name: str
    n_bits: int
    bit_vars: list[str]          # BDD variable names, most significant bit first


class BddPacket:
    """Header domain handle: owns the BDD manager and the field encoding.

    Each analysis is given its packet explicitly; header spaces from different
    packets must never be combined.
    """

    def __init__(self, fields: dict[str, int] | None = None):
        if fields is None:
            fields = DEFAULT_FIELDS
        if not fields:
            raise ValueError("A header domain needs at least one field")
        self.bdd = _bdd.BDD()
        self.encoding: dict[str, FieldEncoding] = {}

        for name, width in fields.items():
            if width < 1:
                raise ValueError(f"Field '{name}' must have a positive width, got {width}")
            bit_vars = [f"{name}_{i}" for i in range(width)]
            # Declared MSB first so prefixes and ranges stay compact
            self.bdd.declare(*bit_vars)
            self.encoding[name] = FieldEncoding(name=name, n_bits=width, bit_vars=bit_vars)

        self.fields = {name: enc.n_bits for name, enc in self.encoding.items()}
        self._all_bits = [bv for enc in self.encoding.values() for bv in enc.bit_vars]

    # ---- Constants ----

    def empty(self) -> BddHeaderSpace:
        return BddHeaderSpace(self, self.bdd.false)

    def full(self) -> BddHeaderSpace:
        return BddHeaderSpace(self, self.bdd.true)

    def _encoding(self, field: str) -> FieldEncoding:
        if field not in self.encoding:
            raise ValueError(f"Unknown header field: {field}")
        return self.encoding[field]

    # ---- Field predicates ----

    def equals(self, field: str, value) -> BddHeaderSpace:
        """Headers whose ``field`` equals ``value`` (int or dotted IPv4)."""
        enc = self._encoding(field)
        value = _to_int(value)
        check_field_value(field, enc.n_bits, value)
        result = self.bdd.true
        for i, bv in enumerate(enc.bit_vars):
            bit = self.bdd.var(bv)
            if (value >> (enc.n_bits - 1 - i)) & 1:
                result &= bit
            else:
                result &= ~bit
        return BddHeaderSpace(self, result)

    def in_range(self, field: str, lo, hi) -> BddHeaderSpace:
        """Headers with ``lo <= field <= hi`` (inclusive)."""
        enc = self._encoding(field)
        lo, hi = _to_int(lo), _to_int(hi)
        check_field_value(field, enc.n_bits, lo)
        check_field_value(field, enc.n_bits, hi)
        if lo > hi:
            return self.empty()
        return BddHeaderSpace(self, self._geq(enc, lo) & self._leq(enc, hi))

    def prefix(self, field: str, value, length: int) -> BddHeaderSpace:
        """Headers whose ``field`` lies in the prefix ``value/length``."""
        enc = self._encoding(field)
        lo, hi = prefix_bounds(enc.n_bits, _to_int(value), length)
        return self.in_range(field, lo, hi)

    def _geq(self, enc: FieldEncoding, value: int):
        # Built from the least significant bit upwards
        result = self.bdd.true
        for i, bv in enumerate(reversed(enc.bit_vars)):
            bit = self.bdd.var(bv)
            if (value >> i) & 1:
                result = bit & result
            else:
                result = bit | result
        return result

    def _leq(self, enc: FieldEncoding, value: int):
        result = self.bdd.true
        for i, bv in enumerate(reversed(enc.bit_vars)):
            bit = self.bdd.var(bv)
            if (value >> i) & 1:
                result = ~bit | result
            else:
                result = ~bit & result
        return result

    # ---- Inspection ----

    def count(self, headers: BddHeaderSpace) -> int:
        """Count the concrete headers represented by a header space."""
        if headers.node == self.bdd.false:
            return 0
        return int(self.bdd.count(headers.node, nvars=len(self._all_bits)))

    def node_count(self, headers: BddHeaderSpace) -> int:
        return len(headers.node)

    def _decode_assignment(self, assignment: dict) -> dict[str, int]:
        header = {}
        for name, enc in self.encoding.items():
            code = 0
            for bv in enc.bit_vars:
                code = (code << 1) | (1 if assignment.get(bv) else 0)
            header[name] = code
        return header

    def pick(self, headers: BddHeaderSpace) -> dict[str, int] | None:
        """One concrete header from the set, or None when it is empty."""
        if headers.is_empty():
            return None
        assignment = self.bdd.pick(headers.node, care_vars=set(self._all_bits))
        return self._decode_assignment(assignment)

    def decode(self, headers: BddHeaderSpace, limit: int = 64) -> list[dict[str, int]]:
        """Decode up to ``limit`` concrete headers."""
        result = []
        for assignment in self.bdd.pick_iter(headers.node, care_vars=set(self._all_bits)):
            if len(result) >= limit:
                break
            result.append(self._decode_assignment(assignment))
        return result

    def __repr__(self):
        return f"BddPacket({self.fields})"


class BddHeaderSpace(HeaderSpace):
    """A header space represented by one BDD node of its packet's manager."""

    def __init__(self, packet: BddPacket, node):
        self.packet = packet
        self.node = node

    def union(self, other):
        return BddHeaderSpace(self.packet, self.node | other.node)

    def intersect(self, other):
        return BddHeaderSpace(self.packet, self.node & other.node)

    def complement(self):
        return BddHeaderSpace(self.packet, ~self.node)

    def is_empty(self) -> bool:
        return self.node == self.packet.bdd.false

    def erase(self, field):
        enc = self.packet._encoding(field)
        return BddHeaderSpace(self.packet, self.packet.bdd.exist(set(enc.bit_vars), self.node))

    def count(self) -> int:
        return self.packet.count(self)

    def __eq__(self, other):
        if not isinstance(other, BddHeaderSpace):
            return NotImplemented
        return self.packet is other.packet and self.node == other.node

    def __hash__(self):
        return hash(int(self.node))

    def __repr__(self):
        return f"BddHeaderSpace({len(self.node)} nodes)"


def _to_int(value) -> int:
    if isinstance(value, str):
        return int(ipaddress.IPv4Address(value))
    return int(value)
