"""Review rule catalogue entry."""

from __future__ import annotations

from dataclasses import dataclass

from carapace.findings import Severity


@dataclass(frozen=True, slots=True)
class Rule:
    """A review rule the AI reviewer is asked to apply.

    ``ruleset`` groups rules for configuration (general, attack, quality,
    solidity); ``chain`` restricts a rule to files of that chain.
    """

    id: str
    name: str
    description: str
    category: str
    severity: Severity
    ruleset: str
    chain: str | None = None
    enabled: bool = True
