"""State variants of the packet-processing graph and ingress locations."""
from __future__ import annotations
from dataclasses import dataclass, fields
from typing import ClassVar, Union


# --- Origination (ingress) states ---

@dataclass(frozen=True)
class OriginateVrf:
    kind: ClassVar[str] = "originate_vrf"
    hostname: str
    vrf: str

@dataclass(frozen=True)
class OriginateInterfaceLink:
    kind: ClassVar[str] = "originate_interface_link"
    hostname: str
    iface: str


# --- Per-hop processing phases ---

@dataclass(frozen=True)
class PreInInterface:
    kind: ClassVar[str] = "pre_in_interface"
    hostname: str
    iface: str

@dataclass(frozen=True)
class PostInVrf:
    kind: ClassVar[str] = "post_in_vrf"
    hostname: str
    vrf: str

@dataclass(frozen=True)
class PreOutVrf:
    kind: ClassVar[str] = "pre_out_vrf"
    hostname: str
    vrf: str

@dataclass(frozen=True)
class PreOutEdge:
    kind: ClassVar[str] = "pre_out_edge"
    node1: str
    iface1: str
    node2: str
    iface2: str

@dataclass(frozen=True)
class PreOutEdgePostNat:
    kind: ClassVar[str] = "pre_out_edge_post_nat"
    node1: str
    iface1: str
    node2: str
    iface2: str


# --- Dispositions ---

@dataclass(frozen=True)
class NodeAccept:
    kind: ClassVar[str] = "node_accept"
    hostname: str

@dataclass(frozen=True)
class NodeDropAclIn:
    kind: ClassVar[str] = "node_drop_acl_in"
    hostname: str

@dataclass(frozen=True)
class NodeDropAclOut:
    kind: ClassVar[str] = "node_drop_acl_out"
    hostname: str

@dataclass(frozen=True)
class NodeDropNoRoute:
    kind: ClassVar[str] = "node_drop_no_route"
    hostname: str

@dataclass(frozen=True)
class NeighborUnreachable:
    kind: ClassVar[str] = "neighbor_unreachable"
    hostname: str
    vrf: str
    iface: str


@dataclass(frozen=True)
class Query:
    """The terminal state: reaching it means the target condition holds."""
    kind: ClassVar[str] = "query"


QUERY = Query()

State = Union[OriginateVrf, OriginateInterfaceLink, PreInInterface, PostInVrf,
              PreOutVrf, PreOutEdge, PreOutEdgePostNat, NodeAccept,
              NodeDropAclIn, NodeDropAclOut, NodeDropNoRoute,
              NeighborUnreachable, Query]

STATE_KINDS: dict[str, type] = {
    cls.kind: cls
    for cls in (OriginateVrf, OriginateInterfaceLink, PreInInterface, PostInVrf,
                PreOutVrf, PreOutEdge, PreOutEdgePostNat, NodeAccept,
                NodeDropAclIn, NodeDropAclOut, NodeDropNoRoute,
                NeighborUnreachable, Query)
}

INGRESS_STATE_TYPES = (OriginateVrf, OriginateInterfaceLink)


def make_state(kind: str, args: list[str]) -> State:
    """Build a state from its kind name and positional fields."""
    cls = STATE_KINDS.get(kind)
    if cls is None:
        raise ValueError(f"Unknown state kind: {kind}")
    arity = len(fields(cls))
    if len(args) != arity:
        raise ValueError(
            f"State kind '{kind}' takes {arity} argument(s), got {len(args)}"
        )
    return cls(*args)


def format_state(state: State) -> str:
    """Render a state as ``kind(arg, ...)``."""
    args = [str(getattr(state, f.name)) for f in fields(state)]
    if not args:
        return state.kind
    return f"{state.kind}({', '.join(args)})"


def is_ingress_state(state) -> bool:
    return isinstance(state, INGRESS_STATE_TYPES)


# --- Ingress locations ---

@dataclass(frozen=True)
class IngressLocation:
    """An externally meaningful entry point: a VRF or an interface link."""
    type: str      # "vrf" or "interface_link"
    hostname: str
    name: str      # VRF name or interface name

    @classmethod
    def vrf(cls, hostname: str, vrf: str) -> IngressLocation:
        return cls("vrf", hostname, vrf)

    @classmethod
    def interface_link(cls, hostname: str, iface: str) -> IngressLocation:
        return cls("interface_link", hostname, iface)

    def __str__(self):
        return f"{self.hostname}[{self.type}={self.name}]"


def to_ingress_location(state: State) -> IngressLocation:
    """Map an origination state to its ingress location."""
    if isinstance(state, OriginateVrf):
        return IngressLocation.vrf(state.hostname, state.vrf)
    if isinstance(state, OriginateInterfaceLink):
        return IngressLocation.interface_link(state.hostname, state.iface)
    raise ValueError(f"Not an ingress state: {state!r}")


def validate_ingress_states(states) -> tuple:
    """Check every state is an ingress variant; return them deduplicated, in order."""
    states = tuple(dict.fromkeys(states))
    for state in states:
        to_ingress_location(state)
    return states
