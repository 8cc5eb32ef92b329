"""Forwarding loop detection: bounded propagation, confirmation, attribution.

1. Propagate every header from every ingress state for a fixed number of
   rounds. TTL is not modeled, so packets on a loop circulate forever, while
   almost every finite path dies out long before the bound. The states still
   holding headers afterwards are loop candidates.
2. Confirm each candidate with an unbounded forward fixpoint from one step
   past it, then shrink the returning headers to those that keep returning
   as returning headers: the candidate is on a loop for exactly that part.
3. Run the backward fixpoint from the confirmed loops to find which ingress
   headers feed into them.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from netreach.fixpoint import (
    FixpointRound, backward_fixpoint, forward_rounds, propagate, restrict_to_ingress,
)
from netreach.graph import StateGraph
from netreach.headerspace import HeaderSpace
from netreach.states import IngressLocation, State, format_state, validate_ingress_states

log = logging.getLogger("netreach.loops")

# A hop takes at most this many edges:
# PreInInterface -> PostInVrf -> PreOutVrf -> PreOutEdge -> PreOutEdgePostNat -> PreInInterface
EDGES_PER_HOP = 5
MAX_TTL = 255
DEFAULT_NUM_ROUNDS = (MAX_TTL + 1) * EDGES_PER_HOP

MAX_LOOP_PATHS = 64


@dataclass
class LoopPath:
    """A lasso witness: ``prefix`` from the ingress, then ``cycle`` repeated."""
    ingress: State
    prefix: list[State]
    cycle: list[State]
    headers: HeaderSpace     # headers that re-enter cycle[0]


@dataclass
class LoopAnalysisResult:
    """Result of loop detection."""
    candidates: dict[State, HeaderSpace]         # still in flight after the round bound
    confirmed: dict[State, HeaderSpace]          # candidate headers proven to return
    attributed: dict[State, HeaderSpace]         # headers feeding a confirmed loop
    ingress: dict[IngressLocation, HeaderSpace]  # attributed, by ingress location
    rounds: list[FixpointRound] = field(default_factory=list)

    @property
    def has_loops(self) -> bool:
        return bool(self.confirmed)


class LoopDetector:
    """Find headers that are forwarded around a cycle forever.

    Args:
        domain: Header domain handle (``BddPacket`` or ``SetDomain``).
        graph: The state graph; shared read-only.
        ingress_states: Origination states, each seeded with every header.
        num_rounds: Phase-one round bound; must exceed the longest acyclic path.
    """

    def __init__(self, domain, graph: StateGraph, ingress_states,
                 num_rounds: int = DEFAULT_NUM_ROUNDS):
        if num_rounds < 0:
            raise ValueError(f"num_rounds must be non-negative, got {num_rounds}")
        self.domain = domain
        self.graph = graph
        self.ingress_states = validate_ingress_states(ingress_states)
        self.num_rounds = num_rounds

    def reachable_in_n_rounds(self, num_rounds: int | None = None) -> dict[State, HeaderSpace]:
        """Headers at each state after exactly ``num_rounds`` forward steps."""
        if num_rounds is None:
            num_rounds = self.num_rounds
        full = self.domain.full()
        frontier = {state: full for state in self.ingress_states}
        round_ = 0
        while frontier and round_ < num_rounds:
            frontier = propagate(self.graph, frontier)
            round_ += 1
        log.debug(f"Frontier after {round_} rounds: {len(frontier)} states")
        return frontier

    def confirm_loop(self, state: State, headers: HeaderSpace) -> HeaderSpace:
        """The part of ``headers`` at ``state`` that returns to ``state`` forever.

        A forward run first keeps the headers that come back at all. That set
        is then shrunk to its greatest subset ``L`` in which every header
        returns to ``state`` as a header of ``L`` again, so a rewrite that
        turns one seed header into another cannot fake a loop. Empty when the
        state is never re-reached with overlapping headers.
        """
        reachable = propagate(self.graph, {state: headers})
        looping = self.domain.empty()
        if state in reachable:
            looping = reachable[state] & headers
        for round_, updated in enumerate(forward_rounds(self.graph, reachable), start=1):
            if state in updated:
                returned = reachable[state] & headers
                if looping.is_empty() and not returned.is_empty():
                    log.debug(f"{format_state(state)} re-reached in round {round_}")
                looping = returned

        while not looping.is_empty():
            refined = looping & self._returning(state, looping)
            if refined == looping:
                break
            log.debug(f"{format_state(state)}: dropped {(looping - refined).count()} "
                      f"header(s) that do not keep returning")
            looping = refined
        return looping

    def _returning(self, state: State, headers: HeaderSpace) -> HeaderSpace:
        """Headers at ``state`` that reach ``state`` again, inside ``headers``, in one or more steps."""
        preimage: dict[State, HeaderSpace] = {}
        for source, edge in self.graph.in_edges(state).items():
            back = edge.traverse_backward(headers)
            if not back.is_empty():
                preimage[source] = back
        backward_fixpoint(self.graph, preimage)
        return preimage.get(state, self.domain.empty())

    def analyze(self) -> LoopAnalysisResult:
        candidates = self.reachable_in_n_rounds()
        log.info(f"{len(candidates)} loop candidate(s) after {self.num_rounds} rounds")

        confirmed: dict[State, HeaderSpace] = {}
        for state, headers in candidates.items():
            looping = self.confirm_loop(state, headers)
            if not looping.is_empty():
                confirmed[state] = looping
        log.info(f"{len(confirmed)} of {len(candidates)} candidate(s) confirmed on loops")

        attributed = dict(confirmed)
        rounds = backward_fixpoint(self.graph, attributed)
        return LoopAnalysisResult(
            candidates=candidates,
            confirmed=confirmed,
            attributed=attributed,
            ingress=restrict_to_ingress(self.ingress_states, attributed, self.domain.empty()),
            rounds=rounds,
        )

    def detect_loops(self) -> dict[IngressLocation, HeaderSpace]:
        """Per ingress location, the headers that enter an infinite loop."""
        return self.analyze().ingress

    def find_loop_paths(self, max_paths: int = MAX_LOOP_PATHS) -> list[LoopPath]:
        """Enumerate lasso witnesses by depth-first symbolic runs.

        Walks simple paths from each ingress state carrying the set of
        headers still on the path, and records a ``LoopPath`` whenever an
        edge leads back onto the current path with headers that overlap the
        ones seen there before. At most ``max_paths`` witnesses per ingress.
        """
        paths: list[LoopPath] = []
        for root in self.ingress_states:
            found = 0
            path = [root]
            on_path = {root: 0}
            packets = [self.domain.full()]
            stack = [iter(self.graph.out_edges(root).items())]

            while stack and found < max_paths:
                try:
                    target, edge = next(stack[-1])
                except StopIteration:
                    stack.pop()
                    del on_path[path.pop()]
                    packets.pop()
                    continue

                headers = edge.traverse_forward(packets[-1])
                if headers.is_empty():
                    continue
                if target in on_path:
                    i = on_path[target]
                    returned = headers & packets[i]
                    if not returned.is_empty():
                        paths.append(LoopPath(
                            ingress=root, prefix=path[:i], cycle=path[i:], headers=returned,
                        ))
                        found += 1
                else:
                    on_path[target] = len(path)
                    path.append(target)
                    packets.append(headers)
                    stack.append(iter(self.graph.out_edges(target).items()))
        return paths
