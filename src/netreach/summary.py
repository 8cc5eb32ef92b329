"""Summaries and text tables for reachability and loop results."""
from __future__ import annotations
from netreach.fixpoint import FixpointRound
from netreach.headerspace import HeaderSpace
from netreach.loops import LoopAnalysisResult
from netreach.reachability import ReachabilityResult
from netreach.states import IngressLocation, format_state


def get_analysis_summary(result: ReachabilityResult | LoopAnalysisResult) -> dict:
    """Get a summary of a reachability or loop result for display."""
    ingress = [
        {
            "location": str(location),
            "headers": headers.count(),
            "empty": headers.is_empty(),
        }
        for location, headers in result.ingress.items()
    ]
    summary = {
        "ingress": ingress,
        "ingress_with_headers": sum(1 for entry in ingress if not entry["empty"]),
        "fixpoint_rounds": len(result.rounds),
        "rounds": [
            {
                "round": r.round,
                "dirty": r.dirty_count,
                "updated": r.updated_count,
            }
            for r in result.rounds
        ],
    }
    if isinstance(result, ReachabilityResult):
        summary["reaching_states"] = len(result.reachable)
    else:
        summary["candidates"] = [format_state(s) for s in result.candidates]
        summary["confirmed"] = [format_state(s) for s in result.confirmed]
        summary["attributed_states"] = len(result.attributed)
    return summary


def format_round_log(rounds: list[FixpointRound]) -> str:
    """Format the fixpoint round log."""
    lines = ["Round | Dirty | Updated",
             "------|-------|--------"]
    for r in rounds:
        lines.append(f"{r.round:5d} | {r.dirty_count:5d} | {r.updated_count:7d}")
    return "\n".join(lines)


def format_ingress_table(ingress: dict[IngressLocation, HeaderSpace]) -> str:
    """Format per-ingress header counts as a readable table."""
    lines = ["Ingress Location | Headers",
             "-----------------|--------"]
    for location, headers in sorted(ingress.items(), key=lambda kv: str(kv[0])):
        lines.append(f"{str(location):16s} | {headers.count()}")
    return "\n".join(lines)
