"""
Extraction pipeline: named regular-expression rules applied to page content.
"""
from __future__ import annotations

import re
from typing import Dict, List, Mapping, Union

from site_harvest.errors import ExtractionError
from site_harvest.logger import get_logger

__all__ = ["ExtractionOutcome", "RuleResult", "extract", "apply_rule"]

RuleResult = Union[List[str], str]
ExtractionOutcome = Dict[str, RuleResult]

log = get_logger("extraction")


def apply_rule(name: str, pattern: str, content: str) -> List[str]:
    """
    Apply one rule globally against *content*.

    Each match contributes its first capturing group when that group matched
    something, otherwise the whole match. Raises ExtractionError when the
    pattern does not compile or evaluation fails.
    """
    try:
        regex = re.compile(pattern)
        values: List[str] = []
        for match in regex.finditer(content):
            group = match.group(1) if regex.groups else None
            values.append(group or match.group(0))
        return values
    except (re.error, OverflowError, ValueError, TypeError, RecursionError, MemoryError) as exc:
        raise ExtractionError(name, str(exc)) from exc


def extract(content: str, rules: Mapping[str, str]) -> ExtractionOutcome:
    """
    Run every rule against *content*; a failing rule yields its error string
    and never affects the others.
    """
    outcome: ExtractionOutcome = {}
    for name, pattern in rules.items():
        try:
            outcome[name] = apply_rule(name, pattern, content or "")
        except ExtractionError as exc:
            log.warning("Rule %r failed: %s", name, exc.message)
            outcome[name] = exc.message
    return outcome
