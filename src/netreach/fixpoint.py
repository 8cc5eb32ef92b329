"""Round-based worklist fixpoints over a state graph.

All updates are monotone joins of header spaces, so every fixpoint here
terminates: per-state values only grow and the header lattice is finite.
"""
from __future__ import annotations
import logging
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from netreach.graph import Edge, StateGraph
from netreach.headerspace import HeaderSpace
from netreach.states import State, to_ingress_location, IngressLocation

log = logging.getLogger("netreach.fixpoint")


@dataclass
class FixpointRound:
    """One synchronous round of a worklist fixpoint."""
    round: int
    dirty_count: int         # states processed this round
    updated_count: int       # states whose value grew (dirty next round)


def _worklist_rounds(
    reachable: dict[State, HeaderSpace],
    dirty: list[State],
    adjacent: Callable[[State], Mapping[State, Edge]],
    traverse: Callable[[Edge, HeaderSpace], HeaderSpace],
) -> Iterator[list[State]]:
    """Run the worklist to completion, yielding the updated states of each round.

    ``reachable`` is updated in place.
    """
    while dirty:
        updated: dict[State, None] = {}
        for state in dirty:
            headers = reachable[state]
            for other, edge in adjacent(state).items():
                result = traverse(edge, headers)
                if result.is_empty():
                    continue
                old = reachable.get(other)
                new = result if old is None else old | result
                if old is None or new != old:
                    reachable[other] = new
                    updated[other] = None
        dirty = list(updated)
        yield dirty


def backward_rounds(graph: StateGraph,
                    reverse_reachable: dict[State, HeaderSpace]) -> Iterator[list[State]]:
    """Backward worklist seeded with every state already in the mapping."""
    return _worklist_rounds(reverse_reachable, list(reverse_reachable),
                            graph.in_edges, Edge.traverse_backward)


def forward_rounds(graph: StateGraph,
                   reachable: dict[State, HeaderSpace]) -> Iterator[list[State]]:
    """Forward worklist seeded with every state already in the mapping."""
    return _worklist_rounds(reachable, list(reachable),
                            graph.out_edges, Edge.traverse_forward)


def _collect(rounds: Iterator[list[State]], seeds: int, direction: str) -> list[FixpointRound]:
    records = []
    dirty_count = seeds
    for updated in rounds:
        records.append(FixpointRound(
            round=len(records) + 1,
            dirty_count=dirty_count,
            updated_count=len(updated),
        ))
        log.debug(f"{direction} round {len(records)}: "
                  f"processed {dirty_count}, updated {len(updated)}")
        dirty_count = len(updated)
    log.debug(f"{direction} fixpoint converged after {len(records)} rounds")
    return records


def backward_fixpoint(graph: StateGraph,
                      reverse_reachable: dict[State, HeaderSpace]) -> list[FixpointRound]:
    """Grow ``reverse_reachable`` in place to the backward fixpoint.

    On return, each state maps to the headers that can reach one of the
    seeded states with a header in that state's seed set. States that reach
    nothing are absent.
    """
    seeds = len(reverse_reachable)
    return _collect(backward_rounds(graph, reverse_reachable), seeds, "backward")


def forward_fixpoint(graph: StateGraph,
                     seeds: Mapping[State, HeaderSpace]
                     ) -> tuple[dict[State, HeaderSpace], list[FixpointRound]]:
    """Forward reachability: every header that can reach each state from the seeds."""
    reachable = dict(seeds)
    rounds = _collect(forward_rounds(graph, reachable), len(reachable), "forward")
    return reachable, rounds


def propagate(graph: StateGraph,
              frontier: Mapping[State, HeaderSpace]) -> dict[State, HeaderSpace]:
    """One forward step: headers reaching each state in exactly one more hop."""
    next_frontier: dict[State, HeaderSpace] = {}
    for source, headers in frontier.items():
        for target, edge in graph.out_edges(source).items():
            image = edge.traverse_forward(headers)
            if image.is_empty():
                continue
            old = next_frontier.get(target)
            next_frontier[target] = image if old is None else old | image
    return next_frontier


def restrict_to_ingress(ingress_states, by_state: Mapping[State, HeaderSpace],
                        empty: HeaderSpace) -> dict[IngressLocation, HeaderSpace]:
    """Key per-state results by ingress location; missing states map to ``empty``."""
    return {
        to_ingress_location(state): by_state.get(state, empty)
        for state in ingress_states
    }
