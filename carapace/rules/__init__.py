"""Rules package: the static review rule catalogue."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from carapace.cwe_mapping import get_cwe_owasp
from carapace.rules.attack import ATTACK_RULES
from carapace.rules.base import Rule
from carapace.rules.general import GENERAL_RULES
from carapace.rules.quality import QUALITY_RULES
from carapace.rules.solidity import SOLIDITY_RULES

KNOWN_RULESETS = ("general", "attack", "quality", "solidity")

ALL_RULES: tuple[Rule, ...] = (
    *GENERAL_RULES,
    *SOLIDITY_RULES,
    *ATTACK_RULES,
    *QUALITY_RULES,
)

_RULES_BY_ID = {rule.id: rule for rule in ALL_RULES}


@dataclass(frozen=True, slots=True)
class RuleInfo:
    """Rule metadata for listing."""

    rule_id: str
    name: str
    description: str
    category: str
    severity: str
    ruleset: str
    chain: str | None
    cwe_ids: tuple[str, ...]
    owasp_category: str | None


def get_all_rules() -> tuple[Rule, ...]:
    return ALL_RULES


def get_rule(rule_id: str) -> Rule | None:
    return _RULES_BY_ID.get(rule_id)


def get_rules_for_chains(chains: Iterable[str]) -> list[Rule]:
    """Return chain-agnostic rules plus rules for the given chains."""
    chain_set = set(chains)
    return [rule for rule in ALL_RULES if rule.chain is None or rule.chain in chain_set]


def select_rules(
    *,
    chains: Iterable[str] = (),
    rulesets: Iterable[str] = (),
    disabled_rule_ids: Iterable[str] = (),
) -> list[Rule]:
    """Pick the enabled rules relevant to detected chains and configured rulesets.

    An empty ``rulesets`` keeps every ruleset. A rule qualifies through its
    ruleset, its category, its chain, or (for chain-less rules) ``general``.
    """
    chain_list = list(chains)
    candidates = (
        get_rules_for_chains(chain_list)
        if chain_list
        else [rule for rule in ALL_RULES if rule.chain is None]
    )

    enabled = set(rulesets)
    disabled = set(disabled_rule_ids)
    selected: list[Rule] = []
    for rule in candidates:
        if not rule.enabled or rule.id in disabled:
            continue
        if enabled and not _matches_rulesets(rule, enabled):
            continue
        selected.append(rule)
    return selected


def describe_rules(rules: Iterable[Rule]) -> list[str]:
    """Format rules as prompt lines: ``[id] name (severity) [CWE-..]: description``."""
    lines: list[str] = []
    for rule in rules:
        entry = get_cwe_owasp(rule.id)
        cwe_tag = f" [{', '.join(entry.cwe_ids)}]" if entry.cwe_ids else ""
        lines.append(f"[{rule.id}] {rule.name} ({rule.severity}){cwe_tag}: {rule.description}")
    return lines


def list_rule_info(*, chain: str | None = None) -> list[RuleInfo]:
    """Return metadata for catalogue rules, optionally limited to one chain."""
    info: list[RuleInfo] = []
    for rule in ALL_RULES:
        if chain is not None and rule.chain not in {None, chain}:
            continue
        entry = get_cwe_owasp(rule.id)
        info.append(
            RuleInfo(
                rule_id=rule.id,
                name=rule.name,
                description=rule.description,
                category=rule.category,
                severity=rule.severity,
                ruleset=rule.ruleset,
                chain=rule.chain,
                cwe_ids=entry.cwe_ids,
                owasp_category=entry.owasp_category,
            )
        )
    return info


def _matches_rulesets(rule: Rule, enabled: set[str]) -> bool:
    if rule.ruleset in enabled or rule.category in enabled:
        return True
    if rule.chain is not None and rule.chain in enabled:
        return True
    return rule.chain is None and "general" in enabled


__all__ = [
    "ALL_RULES",
    "KNOWN_RULESETS",
    "Rule",
    "RuleInfo",
    "describe_rules",
    "get_all_rules",
    "get_rule",
    "get_rules_for_chains",
    "list_rule_info",
    "select_rules",
]
