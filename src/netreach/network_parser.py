"""Fixture network parser using Lark.

Describes small state graphs for tests and examples::

    field dst_ip 4
    ingress originate_vrf(r1, default)
    query dst_ip in 0..7
    edge originate_vrf(r1, default) -> node_accept(r1) when !(dst_ip = 3)
    edge node_accept(r1) -> query
"""
from __future__ import annotations
import ipaddress
import os
from lark import Lark, Transformer
from lark.exceptions import VisitError
from netreach.network_model import (
    NetworkSpec, NetworkModel, EdgeDecl, When, SetField,
    TruePred, FalsePred, FieldEq, FieldRange, FieldPrefix, NotPred, BinPred,
    build_model,
)
from netreach.states import make_state

_GRAMMAR_PATH = os.path.join(os.path.dirname(__file__), "network_grammar.lark")

_parser = None

def _get_parser():
    global _parser
    if _parser is None:
        with open(_GRAMMAR_PATH, "r") as f:
            grammar_text = f.read()
        _parser = Lark(grammar_text, parser="lalr")
    return _parser


class NetworkTransformer(Transformer):
    """Transforms the Lark parse tree into a NetworkSpec."""

    # ---- Terminals ----
    def NAME(self, token):
        return str(token)

    def ARG(self, token):
        return str(token)

    def INT(self, token):
        return int(token)

    def IPV4(self, token):
        return int(ipaddress.IPv4Address(str(token)))

    # ---- Values ----
    def int_value(self, args):
        return args[0]

    def ip_value(self, args):
        return args[0]

    # ---- Predicates ----
    def true_const(self, args):
        return TruePred()

    def false_const(self, args):
        return FalsePred()

    def eq_pred(self, args):
        return FieldEq(args[0], args[1])

    def range_pred(self, args):
        return FieldRange(args[0], args[1], args[2])

    def prefix_pred(self, args):
        return FieldPrefix(args[0], args[1], args[2])

    def not_op(self, args):
        return NotPred(args[0])

    def and_op(self, args):
        return BinPred("&", args[0], args[1])

    def or_op(self, args):
        return BinPred("|", args[0], args[1])

    # ---- States and edges ----
    def state(self, args):
        return make_state(args[0], list(args[1:]))

    def when_action(self, args):
        return When(args[0])

    def set_action(self, args):
        return SetField(args[0].field, args[0])

    def edge_decl(self, args):
        return ("EDGE", EdgeDecl(args[0], args[1], list(args[2:])))

    # ---- Declarations ----
    def field_decl(self, args):
        return ("FIELD", args[0], args[1])

    def ingress_decl(self, args):
        return ("INGRESS", args[0])

    def query_decl(self, args):
        return ("QUERY", args[0])

    # ---- Top-level ----
    def start(self, args):
        spec = NetworkSpec()
        for item in args:
            kind = item[0]
            if kind == "FIELD":
                if item[1] in spec.fields:
                    raise ValueError(f"Field '{item[1]}' declared twice")
                spec.fields[item[1]] = item[2]
            elif kind == "INGRESS":
                spec.ingress.append(item[1])
            elif kind == "QUERY":
                if spec.query is not None:
                    raise ValueError("Only one query declaration is allowed")
                spec.query = item[1]
            elif kind == "EDGE":
                spec.edges.append(item[1])
        return spec


_transformer = NetworkTransformer()


def parse_network_spec(text: str) -> NetworkSpec:
    """Parse a network description into its unevaluated NetworkSpec."""
    parser = _get_parser()
    tree = parser.parse(text)
    try:
        return _transformer.transform(tree)
    except VisitError as e:
        # Semantic errors (unknown state kinds, bad literals) surface as ValueError
        if isinstance(e.orig_exc, ValueError):
            raise e.orig_exc from e
        raise


def parse_network(text: str, domain_factory=None) -> NetworkModel:
    """Parse a network description and build its graph.

    ``domain_factory`` maps field widths to a header domain; defaults to BddPacket.
    """
    return build_model(parse_network_spec(text), domain_factory)


def parse_network_file(filepath: str, domain_factory=None) -> NetworkModel:
    """Parse a network description file and build its graph."""
    with open(filepath, "r") as f:
        text = f.read()
    return parse_network(text, domain_factory)
