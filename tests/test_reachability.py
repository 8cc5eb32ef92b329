"""Tests for backward reachability: scenarios, soundness against brute force, errors."""
import pytest
from netreach.fixpoint import backward_fixpoint, forward_fixpoint
from netreach.graph import Edge, StateGraph
from netreach.headerspace import SetHeaderSpace
from netreach.reachability import ReachabilityAnalysis
from netreach.states import (
    QUERY, IngressLocation, NodeAccept, NodeDropNoRoute, OriginateInterfaceLink,
    OriginateVrf, PostInVrf, PreOutEdge, PreOutEdgePostNat, to_ingress_location,
)
from netreach.transitions import Constraint, EraseAndSet

A = OriginateVrf("a", "default")
B = PostInVrf("b", "default")
C = NodeAccept("c")


# ======================== Hand-crafted graph helpers ========================

def _branchy_graph(domain):
    """Two ingress states, a filter, a rewrite, a drop branch and a cycle."""
    r1 = OriginateVrf("r1", "default")
    r2 = OriginateInterfaceLink("r2", "eth0")
    vrf1 = PostInVrf("r1", "default")
    vrf2 = PostInVrf("r2", "default")
    out = PreOutEdge("r1", "e0", "r2", "e0")
    nat = PreOutEdgePostNat("r1", "e0", "r2", "e0")
    accept = NodeAccept("r2")
    drop = NodeDropNoRoute("r1")
    edges = [
        Edge(r1, vrf1),
        Edge(r2, vrf2, Constraint(domain.equals("src", 0))),
        Edge(vrf1, out, Constraint(domain.in_range("dst", 1, 3))),
        Edge(vrf1, drop, Constraint(domain.equals("dst", 0))),
        Edge(out, nat, EraseAndSet("src", domain.equals("src", 1))),
        Edge(nat, vrf2),
        Edge(vrf2, accept, Constraint(domain.in_range("dst", 2, 3))),
        Edge(vrf2, vrf1, Constraint(domain.equals("dst", 1))),
        Edge(accept, QUERY),
        Edge(drop, QUERY),
    ]
    return StateGraph(edges), [r1, r2]


def _brute_force(domain, graph, ingress, target):
    """Headers at ``ingress`` whose concrete forward run reaches the query within ``target``."""
    result = domain.empty()
    for header in domain.universe:
        singleton = SetHeaderSpace(domain, frozenset([header]))
        reachable, _ = forward_fixpoint(graph, {ingress: singleton})
        if QUERY in reachable and reachable[QUERY].overlaps(target):
            result = result | singleton
    return result


# ======================== Scenarios ========================

class TestLinearScenario:
    def test_all_states_full(self, set_domain):
        """A -> B -> C -> query with identity edges: everything reaches."""
        graph = StateGraph([Edge(A, B), Edge(B, C), Edge(C, QUERY)])
        analysis = ReachabilityAnalysis(set_domain, graph, [A], set_domain.full())
        result = analysis.compute_reverse_reachable()
        full = set_domain.full()
        assert result.reachable[A] == full
        assert result.reachable[B] == full
        assert result.reachable[C] == full
        assert result.ingress == {IngressLocation.vrf("a", "default"): full}

    def test_round_count(self, set_domain):
        graph = StateGraph([Edge(A, B), Edge(B, C), Edge(C, QUERY)])
        result = ReachabilityAnalysis(set_domain, graph, [A], set_domain.full()).compute_reverse_reachable()
        assert len(result.rounds) == 4
        assert result.rounds[0].dirty_count == 1
        assert result.rounds[-1].updated_count == 0

    def test_parsed_model(self, linear_model):
        ingress = linear_model.reachability().get_ingress_location_reachable()
        assert list(ingress.values()) == [linear_model.domain.full()]
        assert ingress[IngressLocation.vrf("a", "default")].count() == 256


class TestFilterScenario:
    def test_never_more_than_predicate(self, set_domain):
        """Through a Constraint(P) edge, reachability equals P & preimage(T)."""
        p = set_domain.equals("src", 1)
        t = set_domain.in_range("dst", 0, 1)
        graph = StateGraph([Edge(A, C, Constraint(p)), Edge(C, QUERY)])
        result = ReachabilityAnalysis(set_domain, graph, [A], t).compute_reverse_reachable()
        assert result.reachable[A] == p & t

    def test_parsed_model(self, filtered_model):
        packet = filtered_model.domain
        ingress = filtered_model.reachability().get_ingress_location_reachable()
        expected = packet.equals("src_ip", 3) & packet.in_range("dst_ip", 0, 7)
        assert ingress[IngressLocation.vrf("r1", "default")] == expected
        assert expected.count() == 8


class TestNat:
    def test_translated_source_reaches(self, nat_model):
        """Every original source is rewritten to 9, so only dst is constrained."""
        packet = nat_model.domain
        ingress = nat_model.reachability().get_ingress_location_reachable()
        location = IngressLocation.interface_link("r1", "eth0")
        assert ingress[location] == packet.in_range("dst_ip", 0, 3)

    def test_other_source_unreachable(self, nat_model):
        packet = nat_model.domain
        analysis = nat_model.reachability(packet.equals("src_ip", 5))
        assert all(hs.is_empty() for hs in analysis.get_ingress_location_reachable().values())

    def test_nat_state_carries_translated_headers(self, nat_model):
        packet = nat_model.domain
        result = nat_model.reachability().compute_reverse_reachable()
        post_nat = PreOutEdgePostNat("r1", "eth1", "r2", "eth0")
        assert result.reachable[post_nat] == packet.equals("src_ip", 9)


class TestCampus:
    def test_prefix_filters(self, campus_model):
        packet = campus_model.domain
        ingress = campus_model.reachability().get_ingress_location_reachable()
        delivered = packet.prefix("dst_ip", "10.0.0.0", 8) & packet.equals("ip_protocol", 6)
        assert ingress[IngressLocation.vrf("edge1", "default")] == delivered
        link = IngressLocation.interface_link("edge1", "Ethernet1/1")
        assert ingress[link] == delivered - packet.prefix("src_ip", "192.168.0.0", 16)


# ======================== Properties ========================

class TestSoundness:
    @pytest.mark.parametrize("target_range", [(0, 3), (2, 2), (1, 1)])
    def test_matches_brute_force(self, set_domain, target_range):
        """Backward result equals the set of headers whose forward run reaches the target."""
        graph, ingress = _branchy_graph(set_domain)
        target = set_domain.in_range("dst", *target_range)
        result = ReachabilityAnalysis(set_domain, graph, ingress, target).compute_reverse_reachable()
        for state in ingress:
            assert result.reachable.get(state, set_domain.empty()) == \
                _brute_force(set_domain, graph, state, target), state

    def test_idempotent(self, set_domain):
        graph, ingress = _branchy_graph(set_domain)
        result = ReachabilityAnalysis(set_domain, graph, ingress, set_domain.full()).compute_reverse_reachable()
        again = dict(result.reachable)
        rounds = backward_fixpoint(graph, again)
        assert again == result.reachable
        assert len(rounds) == 1
        assert rounds[0].updated_count == 0

    def test_complementary_targets_partition(self, set_domain):
        """One graph, two targets: results union to the full-target result."""
        graph, ingress = _branchy_graph(set_domain)
        low = set_domain.in_range("dst", 0, 1)
        full_result = ReachabilityAnalysis(set_domain, graph, ingress, set_domain.full()).get_ingress_location_reachable()
        low_result = ReachabilityAnalysis(set_domain, graph, ingress, low).get_ingress_location_reachable()
        high_result = ReachabilityAnalysis(set_domain, graph, ingress, ~low).get_ingress_location_reachable()
        for location in full_result:
            assert low_result[location] | high_result[location] == full_result[location]


class TestEdgeCases:
    def test_unreachable_ingress_is_empty(self, set_domain):
        lonely = OriginateVrf("lonely", "default")
        graph = StateGraph([Edge(A, QUERY), Edge(lonely, B)])
        ingress = ReachabilityAnalysis(set_domain, graph, [A, lonely], set_domain.full()).get_ingress_location_reachable()
        assert ingress[IngressLocation.vrf("lonely", "default")].is_empty()
        assert ingress[IngressLocation.vrf("a", "default")] == set_domain.full()

    def test_ingress_is_restriction_of_reachable(self, set_domain):
        """Only ingress states appear, keyed by location, with their reachable headers."""
        graph, ingress = _branchy_graph(set_domain)
        result = ReachabilityAnalysis(set_domain, graph, ingress, set_domain.full()).compute_reverse_reachable()
        assert list(result.ingress) == [to_ingress_location(s) for s in ingress]
        for state in ingress:
            assert result.ingress[to_ingress_location(state)] == \
                result.reachable.get(state, set_domain.empty())

    def test_empty_target(self, set_domain):
        graph = StateGraph([Edge(A, QUERY)])
        result = ReachabilityAnalysis(set_domain, graph, [A], set_domain.empty()).compute_reverse_reachable()
        assert result.ingress[IngressLocation.vrf("a", "default")].is_empty()
        assert set(result.reachable) == {QUERY}

    def test_query_without_in_edges(self, set_domain):
        graph = StateGraph([Edge(A, B)])
        result = ReachabilityAnalysis(set_domain, graph, [A], set_domain.full()).compute_reverse_reachable()
        assert len(result.rounds) == 1
        assert result.ingress[IngressLocation.vrf("a", "default")].is_empty()

    def test_custom_query_state(self, set_domain):
        graph = StateGraph([Edge(A, B), Edge(B, C)])
        analysis = ReachabilityAnalysis(set_domain, graph, [A], set_domain.equals("src", 0), query_state=C)
        assert analysis.get_ingress_location_reachable()[IngressLocation.vrf("a", "default")] == \
            set_domain.equals("src", 0)


class TestErrors:
    def test_non_ingress_state_rejected(self, set_domain):
        graph = StateGraph([Edge(A, QUERY)])
        with pytest.raises(ValueError, match="Not an ingress state"):
            ReachabilityAnalysis(set_domain, graph, [B], set_domain.full())

    def test_query_with_out_edges_rejected(self, set_domain):
        graph = StateGraph([Edge(A, QUERY), Edge(QUERY, B)])
        with pytest.raises(ValueError, match="must not have out-edges"):
            ReachabilityAnalysis(set_domain, graph, [A], set_domain.full())
