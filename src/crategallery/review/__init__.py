"""Turning duplicate recommendations into reviewed removal plans."""

from .decisions import (
    DecisionError,
    KeepDecision,
    RemovalPlan,
    decisions_from_scan,
    parse_index_list,
    parse_keep_decision,
    plan_removals,
)

__all__ = [
    "DecisionError",
    "KeepDecision",
    "RemovalPlan",
    "decisions_from_scan",
    "parse_index_list",
    "parse_keep_decision",
    "plan_removals",
]
