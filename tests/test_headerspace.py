"""Tests for the finite-set header domain."""
import pytest
from netreach.headerspace import SetDomain, prefix_bounds


class TestSetDomain:
    def test_universe_size(self, set_domain):
        assert set_domain.full().count() == 8
        assert set_domain.empty().is_empty()

    def test_equals(self, set_domain):
        hs = set_domain.equals("dst", 2)
        assert hs.count() == 2
        assert all(h["dst"] == 2 for h in hs.as_dicts())

    def test_in_range(self, set_domain):
        assert set_domain.in_range("dst", 1, 3).count() == 6
        assert set_domain.in_range("dst", 3, 1).is_empty()

    def test_prefix(self):
        domain = SetDomain({"ip": 4})
        assert domain.prefix("ip", 0b1010, 2) == domain.in_range("ip", 8, 11)
        assert domain.prefix("ip", 5, 0) == domain.full()

    def test_header_singleton(self, set_domain):
        hs = set_domain.header(dst=1, src=0)
        assert hs.as_dicts() == [{"dst": 1, "src": 0}]

    def test_header_requires_all_fields(self, set_domain):
        with pytest.raises(ValueError, match="Missing header fields"):
            set_domain.header(dst=1)

    def test_unknown_field(self, set_domain):
        with pytest.raises(ValueError, match="Unknown header field"):
            set_domain.equals("ttl", 1)

    def test_value_out_of_range(self, set_domain):
        with pytest.raises(ValueError, match="out of range"):
            set_domain.equals("src", 2)

    def test_rejects_zero_width(self):
        with pytest.raises(ValueError):
            SetDomain({"dst": 0})


class TestSetOperations:
    def test_union_intersect_complement(self, set_domain):
        a = set_domain.equals("dst", 0)
        b = set_domain.equals("src", 1)
        assert (a | b).count() == 2 + 4 - 1
        assert (a & b).count() == 1
        assert (~a).count() == 6
        assert (a - b).count() == 1

    def test_subset_and_overlap(self, set_domain):
        a = set_domain.equals("dst", 0)
        assert a.is_subset(set_domain.full())
        assert not set_domain.full().is_subset(a)
        assert a.overlaps(set_domain.full())
        assert not a.overlaps(set_domain.equals("dst", 1))

    def test_erase_forgets_field(self, set_domain):
        hs = set_domain.header(dst=3, src=1)
        assert hs.erase("dst") == set_domain.equals("src", 1)
        assert hs.erase("src") == set_domain.equals("dst", 3)

    def test_erase_empty_is_empty(self, set_domain):
        assert set_domain.empty().erase("dst").is_empty()

    def test_equality_is_per_domain(self):
        d1 = SetDomain({"x": 1})
        d2 = SetDomain({"x": 1})
        assert d1.full() == d1.full()
        assert d1.full() != d2.full()


class TestPrefixBounds:
    def test_host_route(self):
        assert prefix_bounds(8, 0x2A, 8) == (0x2A, 0x2A)

    def test_masks_host_bits(self):
        assert prefix_bounds(8, 0b10110111, 4) == (0b10110000, 0b10111111)

    def test_rejects_long_prefix(self):
        with pytest.raises(ValueError):
            prefix_bounds(8, 0, 9)
