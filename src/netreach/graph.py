"""Immutable state graph: forward and reverse adjacency over labelled edges."""
from __future__ import annotations
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from netreach.headerspace import HeaderSpace
from netreach.states import State, format_state
from netreach.transitions import Identity, Or, Transition


@dataclass(frozen=True, eq=False)
class Edge:
    """A directed transition between two states."""
    source: State
    target: State
    transition: Transition = field(default_factory=Identity)

    def traverse_forward(self, headers: HeaderSpace) -> HeaderSpace:
        return self.transition.forward(headers)

    def traverse_backward(self, headers: HeaderSpace) -> HeaderSpace:
        return self.transition.backward(headers)

    def __repr__(self):
        return f"Edge({format_state(self.source)} -> {format_state(self.target)})"


def merge_edges(edges: Iterable[Edge]) -> list[Edge]:
    """Collapse parallel edges (same source and target) into one ``Or`` edge."""
    grouped: dict[tuple[State, State], list[Edge]] = {}
    for edge in edges:
        grouped.setdefault((edge.source, edge.target), []).append(edge)

    merged = []
    for (source, target), group in grouped.items():
        if len(group) == 1:
            merged.append(group[0])
        else:
            merged.append(Edge(source, target, Or(*(e.transition for e in group))))
    return merged


_NO_EDGES: Mapping[State, Edge] = MappingProxyType({})


class StateGraph:
    """Adjacency structure over states, built once and never mutated.

    Accepts a forward mapping ``{source: {target: Edge}}`` or an iterable of
    edges with at most one edge per ordered pair of states.
    """

    def __init__(self, edges: Mapping[State, Mapping[State, Edge]] | Iterable[Edge]):
        if isinstance(edges, Mapping):
            forward = _forward_from_mapping(edges)
        else:
            forward = _forward_from_edges(edges)

        self._edges = _freeze(forward)
        self._reverse_edges = _freeze(_compute_reverse_edges(forward))

        states: dict[State, None] = {}
        for source, out in forward.items():
            states[source] = None
            for target in out:
                states[target] = None
        self._states = tuple(states)
        self._num_edges = sum(len(out) for out in forward.values())

    def out_edges(self, state: State) -> Mapping[State, Edge]:
        """Outgoing edges of ``state`` keyed by target (empty if none)."""
        return self._edges.get(state, _NO_EDGES)

    def in_edges(self, state: State) -> Mapping[State, Edge]:
        """Incoming edges of ``state`` keyed by source (empty if none)."""
        return self._reverse_edges.get(state, _NO_EDGES)

    @property
    def states(self) -> tuple[State, ...]:
        return self._states

    @property
    def num_edges(self) -> int:
        return self._num_edges

    def edges(self) -> Iterator[Edge]:
        for out in self._edges.values():
            yield from out.values()

    def __contains__(self, state) -> bool:
        return state in self._edges or state in self._reverse_edges

    def __repr__(self):
        return f"StateGraph({len(self._states)} states, {self._num_edges} edges)"


def _forward_from_mapping(edges: Mapping[State, Mapping[State, Edge]]) -> dict:
    forward: dict[State, dict[State, Edge]] = {}
    for source, out in edges.items():
        for target, edge in out.items():
            if edge.source != source or edge.target != target:
                raise ValueError(
                    f"{edge!r} filed under {format_state(source)} -> {format_state(target)}"
                )
            forward.setdefault(source, {})[target] = edge
    return forward


def _forward_from_edges(edges: Iterable[Edge]) -> dict:
    forward: dict[State, dict[State, Edge]] = {}
    for edge in edges:
        out = forward.setdefault(edge.source, {})
        if edge.target in out:
            raise ValueError(f"Duplicate edge {edge!r}; merge parallel edges first")
        out[edge.target] = edge
    return forward


def _compute_reverse_edges(forward: dict) -> dict:
    reverse: dict[State, dict[State, Edge]] = {}
    for source, out in forward.items():
        for target, edge in out.items():
            reverse.setdefault(target, {})[source] = edge
    return reverse


def _freeze(adjacency: dict) -> Mapping[State, Mapping[State, Edge]]:
    return MappingProxyType({
        state: MappingProxyType(dict(out)) for state, out in adjacency.items()
    })
