"""Backward reachability analysis over a state graph.

Graph nodes are packet-processing states and edges carry header-space
transitions. A single query state (no out-edges, in-edges from the
dispositions of interest) is seeded with the target header space; the
backward fixpoint then labels every state with the headers that can reach
the query from there. Reasoning backward from one query covers all sources
at once, which is much cheaper than a forward run per source.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from netreach.fixpoint import FixpointRound, backward_fixpoint, restrict_to_ingress
from netreach.graph import StateGraph
from netreach.headerspace import HeaderSpace
from netreach.loops import DEFAULT_NUM_ROUNDS, LoopDetector
from netreach.states import QUERY, IngressLocation, State, format_state, validate_ingress_states

log = logging.getLogger("netreach.reachability")


@dataclass
class ReachabilityResult:
    """Result of one backward reachability run."""
    reachable: dict[State, HeaderSpace]              # every state that reaches the query
    ingress: dict[IngressLocation, HeaderSpace]      # restricted to ingress states
    rounds: list[FixpointRound] = field(default_factory=list)


class ReachabilityAnalysis:
    """Headers that can reach ``query_state`` within ``query_header_space``.

    Args:
        domain: Header domain handle (``BddPacket`` or ``SetDomain``).
        graph: The state graph; shared read-only.
        ingress_states: Origination states of interest.
        query_header_space: Target headers at the query state.
        query_state: The terminal state; must have no out-edges.
    """

    def __init__(self, domain, graph: StateGraph, ingress_states,
                 query_header_space: HeaderSpace, query_state: State = QUERY):
        if graph.out_edges(query_state):
            raise ValueError(
                f"Query state {format_state(query_state)} must not have out-edges"
            )
        self.domain = domain
        self.graph = graph
        self.ingress_states = validate_ingress_states(ingress_states)
        self.query_state = query_state
        self.query_header_space = query_header_space

    def compute_reverse_reachable(self) -> ReachabilityResult:
        reverse_reachable = {self.query_state: self.query_header_space}
        rounds = backward_fixpoint(self.graph, reverse_reachable)
        log.info(f"Backward fixpoint converged after {len(rounds)} rounds, "
                 f"{len(reverse_reachable)} states reach {format_state(self.query_state)}")
        return ReachabilityResult(
            reachable=reverse_reachable,
            ingress=restrict_to_ingress(self.ingress_states, reverse_reachable,
                                        self.domain.empty()),
            rounds=rounds,
        )

    def get_ingress_location_reachable(self) -> dict[IngressLocation, HeaderSpace]:
        """Per ingress location, the headers that reach the query."""
        return self.compute_reverse_reachable().ingress

    def detect_loops(self, num_rounds: int = DEFAULT_NUM_ROUNDS) -> dict[IngressLocation, HeaderSpace]:
        """Per ingress location, the headers that enter an infinite forwarding loop."""
        detector = LoopDetector(self.domain, self.graph, self.ingress_states,
                                num_rounds=num_rounds)
        return detector.detect_loops()
