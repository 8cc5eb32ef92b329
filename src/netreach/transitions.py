"""Edge transitions: forward image and backward preimage over header spaces.

Every transition must be monotone under union and map the empty set to the
empty set. Forward and backward need not be exact inverses (a rewrite loses
the original field value), but each must be sound on its own.
"""
from __future__ import annotations
from netreach.headerspace import HeaderSpace


class Transition:
    def forward(self, headers: HeaderSpace) -> HeaderSpace:
        raise NotImplementedError

    def backward(self, headers: HeaderSpace) -> HeaderSpace:
        raise NotImplementedError


class Identity(Transition):
    """Headers pass through unchanged."""

    def forward(self, headers):
        return headers

    def backward(self, headers):
        return headers

    def __repr__(self):
        return "Identity()"


class Constraint(Transition):
    """Only headers in ``predicate`` may traverse (ACLs, forwarding filters)."""

    def __init__(self, predicate: HeaderSpace):
        self.predicate = predicate

    def forward(self, headers):
        return headers & self.predicate

    def backward(self, headers):
        return headers & self.predicate

    def __repr__(self):
        return f"Constraint({self.predicate!r})"


class EraseAndSet(Transition):
    """Rewrite ``field`` to any value in ``values`` (NAT and similar rewrites).

    ``values`` must only constrain ``field``.
    """

    def __init__(self, field: str, values: HeaderSpace):
        self.field = field
        self.values = values

    def forward(self, headers):
        return headers.erase(self.field) & self.values

    def backward(self, headers):
        return (headers & self.values).erase(self.field)

    def __repr__(self):
        return f"EraseAndSet({self.field!r}, {self.values!r})"


class Composite(Transition):
    """Sequential composition: forward applies the parts in order."""

    def __init__(self, *transitions: Transition):
        self.transitions = tuple(transitions)

    def forward(self, headers):
        for t in self.transitions:
            if headers.is_empty():
                break
            headers = t.forward(headers)
        return headers

    def backward(self, headers):
        for t in reversed(self.transitions):
            if headers.is_empty():
                break
            headers = t.backward(headers)
        return headers

    def __repr__(self):
        return f"Composite{self.transitions!r}"


class Or(Transition):
    """Union of parallel transitions between the same pair of states."""

    def __init__(self, *transitions: Transition):
        if not transitions:
            raise ValueError("Or needs at least one transition")
        self.transitions = tuple(transitions)

    def forward(self, headers):
        result = self.transitions[0].forward(headers)
        for t in self.transitions[1:]:
            result = result | t.forward(headers)
        return result

    def backward(self, headers):
        result = self.transitions[0].backward(headers)
        for t in self.transitions[1:]:
            result = result | t.backward(headers)
        return result

    def __repr__(self):
        return f"Or{self.transitions!r}"
