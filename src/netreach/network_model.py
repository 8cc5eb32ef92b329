"""Dataclasses for fixture network descriptions and their evaluation."""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Union
from netreach.bdd_packet import DEFAULT_FIELDS, BddPacket
from netreach.graph import Edge, StateGraph, merge_edges
from netreach.headerspace import HeaderSpace
from netreach.loops import DEFAULT_NUM_ROUNDS, LoopDetector
from netreach.reachability import ReachabilityAnalysis
from netreach.states import State, is_ingress_state
from netreach.transitions import Composite, Constraint, EraseAndSet, Identity, Transition


# --- Predicate AST ---

@dataclass
class TruePred:
    pass

@dataclass
class FalsePred:
    pass

@dataclass
class FieldEq:
    field: str
    value: int

@dataclass
class FieldRange:
    field: str
    lo: int
    hi: int

@dataclass
class FieldPrefix:
    field: str
    value: int
    length: int

@dataclass
class NotPred:
    operand: Pred

@dataclass
class BinPred:
    op: str  # & or |
    left: Pred
    right: Pred

Pred = Union[TruePred, FalsePred, FieldEq, FieldRange, FieldPrefix, NotPred, BinPred]
FieldPred = Union[FieldEq, FieldRange, FieldPrefix]


# --- Edge actions ---

@dataclass
class When:
    """Filter: only matching headers traverse."""
    pred: Pred

@dataclass
class SetField:
    """Rewrite: the field takes any value matched by ``values``."""
    field: str
    values: FieldPred

Action = Union[When, SetField]


@dataclass
class EdgeDecl:
    source: State
    target: State
    actions: list[Action] = field(default_factory=list)


# --- Top-level description ---

@dataclass
class NetworkSpec:
    fields: dict[str, int] = field(default_factory=dict)
    ingress: list[State] = field(default_factory=list)
    query: Pred | None = None
    edges: list[EdgeDecl] = field(default_factory=list)


@dataclass
class NetworkModel:
    """A built network: domain, graph, ingress states and query target."""
    domain: object
    graph: StateGraph
    ingress_states: list[State]
    query_header_space: HeaderSpace
    spec: NetworkSpec

    def reachability(self, query_header_space: HeaderSpace | None = None) -> ReachabilityAnalysis:
        if query_header_space is None:
            query_header_space = self.query_header_space
        return ReachabilityAnalysis(self.domain, self.graph, self.ingress_states,
                                    query_header_space)

    def loop_detector(self, num_rounds: int = DEFAULT_NUM_ROUNDS) -> LoopDetector:
        return LoopDetector(self.domain, self.graph, self.ingress_states,
                            num_rounds=num_rounds)


def eval_pred(pred: Pred, domain) -> HeaderSpace:
    """Evaluate a predicate AST to a header space of ``domain``."""
    if isinstance(pred, TruePred):
        return domain.full()
    elif isinstance(pred, FalsePred):
        return domain.empty()
    elif isinstance(pred, FieldEq):
        return domain.equals(pred.field, pred.value)
    elif isinstance(pred, FieldRange):
        return domain.in_range(pred.field, pred.lo, pred.hi)
    elif isinstance(pred, FieldPrefix):
        return domain.prefix(pred.field, pred.value, pred.length)
    elif isinstance(pred, NotPred):
        return ~eval_pred(pred.operand, domain)
    elif isinstance(pred, BinPred):
        left = eval_pred(pred.left, domain)
        right = eval_pred(pred.right, domain)
        if pred.op == "&":
            return left & right
        elif pred.op == "|":
            return left | right
        raise ValueError(f"Unknown predicate operator: {pred.op}")
    raise ValueError(f"Cannot evaluate predicate: {pred}")


def pred_to_str(pred: Pred) -> str:
    """Convert a predicate AST back to source syntax."""
    if isinstance(pred, TruePred):
        return "true"
    elif isinstance(pred, FalsePred):
        return "false"
    elif isinstance(pred, FieldEq):
        return f"{pred.field} = {pred.value}"
    elif isinstance(pred, FieldRange):
        return f"{pred.field} in {pred.lo}..{pred.hi}"
    elif isinstance(pred, FieldPrefix):
        return f"{pred.field} in {pred.value}/{pred.length}"
    elif isinstance(pred, NotPred):
        return f"!({pred_to_str(pred.operand)})"
    elif isinstance(pred, BinPred):
        return f"({pred_to_str(pred.left)} {pred.op} {pred_to_str(pred.right)})"
    return str(pred)


def _build_transition(actions: list[Action], domain) -> Transition:
    parts: list[Transition] = []
    for action in actions:
        if isinstance(action, When):
            parts.append(Constraint(eval_pred(action.pred, domain)))
        elif isinstance(action, SetField):
            if action.values.field != action.field:
                raise ValueError(
                    f"set {action.field} cannot constrain field '{action.values.field}'"
                )
            parts.append(EraseAndSet(action.field, eval_pred(action.values, domain)))
    if not parts:
        return Identity()
    if len(parts) == 1:
        return parts[0]
    return Composite(*parts)


def build_model(spec: NetworkSpec, domain_factory: Callable | None = None) -> NetworkModel:
    """Evaluate a parsed description into a graph over a fresh header domain.

    ``domain_factory`` takes the field widths and returns a domain handle;
    it defaults to ``BddPacket``. Without ``field`` declarations the default
    packet layout is used. Without ``ingress`` declarations every origination
    state that has an out-edge is an ingress state.
    """
    if domain_factory is None:
        domain_factory = BddPacket
    domain = domain_factory(dict(spec.fields) if spec.fields else dict(DEFAULT_FIELDS))

    edges = [
        Edge(decl.source, decl.target, _build_transition(decl.actions, domain))
        for decl in spec.edges
    ]
    graph = StateGraph(merge_edges(edges))

    ingress = list(spec.ingress)
    if not ingress:
        ingress = [s for s in dict.fromkeys(d.source for d in spec.edges)
                   if is_ingress_state(s)]

    query = domain.full() if spec.query is None else eval_pred(spec.query, domain)
    return NetworkModel(
        domain=domain,
        graph=graph,
        ingress_states=ingress,
        query_header_space=query,
        spec=spec,
    )
