"""Smart-contract rules for Solidity sources."""

from carapace.findings import Severity
from carapace.rules.base import Rule


def _sol(
    rule_id: str, name: str, description: str, severity: Severity, category: str = "security"
) -> Rule:
    return Rule(
        id=rule_id,
        name=name,
        description=description,
        category=category,
        severity=severity,
        ruleset="solidity",
        chain="solidity",
    )


SOLIDITY_RULES: tuple[Rule, ...] = (
    _sol(
        "sol-reentrancy",
        "Reentrancy",
        "External calls made before state updates, allowing re-entry into the contract.",
        "critical",
    ),
    _sol(
        "sol-access-control",
        "Access Control",
        "Privileged functions missing onlyOwner/role checks or exposed as public.",
        "critical",
    ),
    _sol(
        "sol-gas-optimization",
        "Gas Optimization",
        "Storage reads in loops, redundant SSTOREs, and memory used where calldata fits.",
        "medium",
        category="performance",
    ),
    _sol(
        "sol-integer-overflow",
        "Integer Overflow",
        "Arithmetic inside unchecked blocks or on pre-0.8 compilers without SafeMath.",
        "high",
    ),
    _sol(
        "sol-flash-loan",
        "Flash Loan Attack",
        "Balance- or price-dependent logic that can be manipulated within one transaction.",
        "critical",
    ),
    _sol(
        "sol-oracle-manipulation",
        "Oracle Manipulation",
        "Spot prices from AMM reserves or stale oracle answers used for valuation.",
        "critical",
    ),
    _sol(
        "sol-front-running-mev",
        "Front-Running / MEV",
        "Transactions whose outcome depends on ordering without slippage or commit-reveal.",
        "high",
    ),
    _sol(
        "sol-unchecked-return",
        "Unchecked Return Values",
        "Low-level call, send, or ERC20 transfer results that are ignored.",
        "high",
    ),
    _sol(
        "sol-tx-origin",
        "tx.origin Usage",
        "Authorization based on tx.origin instead of msg.sender.",
        "high",
    ),
    _sol(
        "sol-delegatecall-safety",
        "Delegatecall Safety",
        "delegatecall to user-controlled or unverified targets.",
        "critical",
    ),
)
