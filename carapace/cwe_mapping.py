"""CWE / OWASP Top 10 (2021) lookup by rule id."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class CweOwaspEntry:
    cwe_ids: tuple[str, ...] = ()
    owasp_category: str | None = None


A01 = "A01:2021-Broken Access Control"
A02 = "A02:2021-Cryptographic Failures"
A03 = "A03:2021-Injection"
A05 = "A05:2021-Security Misconfiguration"
A07 = "A07:2021-Identification and Authentication Failures"
A08 = "A08:2021-Software and Data Integrity Failures"
A09 = "A09:2021-Security Logging and Monitoring Failures"
A10 = "A10:2021-Server-Side Request Forgery"


def _entry(*cwe_ids: str, owasp: str | None = None) -> CweOwaspEntry:
    return CweOwaspEntry(cwe_ids=tuple(cwe_ids), owasp_category=owasp)


CWE_OWASP_MAP: dict[str, CweOwaspEntry] = {
    # Catalogue rules used in AI prompts.
    "gen-code-quality": _entry(),
    "gen-potential-bugs": _entry("CWE-682", "CWE-476"),
    "gen-performance": _entry(),
    "gen-security": _entry("CWE-20", owasp=A03),
    "gen-error-handling": _entry("CWE-390", "CWE-754"),
    "gen-type-safety": _entry("CWE-843"),
    "sol-reentrancy": _entry("CWE-841"),
    "sol-access-control": _entry("CWE-284", owasp=A01),
    "sol-gas-optimization": _entry(),
    "sol-integer-overflow": _entry("CWE-190"),
    "sol-flash-loan": _entry("CWE-362"),
    "sol-oracle-manipulation": _entry("CWE-345"),
    "sol-front-running-mev": _entry("CWE-362"),
    "sol-unchecked-return": _entry("CWE-252"),
    "sol-tx-origin": _entry("CWE-287", owasp=A07),
    "sol-delegatecall-safety": _entry("CWE-829"),
    "atk-missing-security-headers": _entry("CWE-693", owasp=A05),
    "atk-cors-misconfiguration": _entry("CWE-942", owasp=A05),
    "atk-no-rate-limiting": _entry("CWE-770", owasp=A05),
    "atk-tls-weakness": _entry("CWE-326", "CWE-327", owasp=A02),
    "atk-brute-force-vector": _entry("CWE-307", owasp=A07),
    "atk-session-management": _entry("CWE-384", owasp=A07),
    "atk-insecure-cookie": _entry("CWE-614", "CWE-1004", owasp=A05),
    "atk-sqli": _entry("CWE-89", owasp=A03),
    "atk-xss": _entry("CWE-79", owasp=A03),
    "atk-command-injection": _entry("CWE-78", owasp=A03),
    "atk-ssrf": _entry("CWE-918", owasp=A10),
    "atk-path-traversal": _entry("CWE-22", owasp=A01),
    "atk-idor": _entry("CWE-639", owasp=A01),
    "atk-mass-assignment": _entry("CWE-915", owasp=A08),
    "qual-cyclomatic-complexity": _entry(),
    "qual-function-length": _entry(),
    "qual-nesting-depth": _entry(),
    "qual-naming-convention": _entry(),
    "qual-magic-numbers": _entry(),
    "qual-unused-imports": _entry("CWE-561"),
    "qual-empty-catch": _entry("CWE-390"),
    "qual-storage-vs-memory": _entry(),
    # Pattern scanner: security.
    "cp-sec-sql-injection": _entry("CWE-89", owasp=A03),
    "cp-sec-xss-innerhtml": _entry("CWE-79", owasp=A03),
    "cp-sec-eval": _entry("CWE-95", owasp=A03),
    "cp-sec-hardcoded-secret": _entry("CWE-798", owasp=A07),
    "cp-sec-hardcoded-ip": _entry("CWE-200"),
    "cp-sec-path-traversal": _entry("CWE-22", owasp=A01),
    "cp-sec-command-injection": _entry("CWE-78", owasp=A03),
    "cp-sec-cors-wildcard": _entry("CWE-942", owasp=A05),
    "cp-sec-jwt-none": _entry("CWE-327", owasp=A02),
    "cp-sec-md5-sha1": _entry("CWE-328", owasp=A02),
    "cp-sec-http-no-tls": _entry("CWE-319", owasp=A02),
    "cp-sec-console-log-sensitive": _entry("CWE-532", owasp=A09),
    "cp-sec-unsafe-deserialization": _entry("CWE-502", owasp=A08),
    "cp-sec-insecure-random": _entry("CWE-330", owasp=A02),
    "cp-sec-timing-attack": _entry("CWE-208", owasp=A02),
    # Pattern scanner: solidity.
    "cp-sol-tx-origin": _entry("CWE-287", owasp=A07),
    "cp-sol-selfdestruct": _entry("CWE-284"),
    "cp-sol-delegatecall": _entry("CWE-829"),
    "cp-sol-timestamp": _entry("CWE-330"),
    "cp-sol-floating-pragma": _entry(),
    # Pattern scanner: quality and cleaning.
    "cp-qual-todo-fixme": _entry(),
    "cp-qual-console-log": _entry(),
    "cp-qual-empty-catch": _entry("CWE-390"),
    "cp-qual-magic-number": _entry(),
    "cp-qual-debugger": _entry(),
    "cp-qual-alert": _entry(),
    "cp-qual-any-type": _entry("CWE-843"),
    "cp-qual-non-null-assertion": _entry(),
    "cp-qual-var-usage": _entry(),
    "cp-qual-equality-coercion": _entry("CWE-843"),
    "cp-clean-file-too-long": _entry(),
    "cp-clean-duplicate-code": _entry(),
    "cp-clean-mixed-quotes": _entry(),
    # AST scanner.
    "cp-clean-unused-import": _entry("CWE-561"),
    "cp-clean-unused-variable": _entry("CWE-563"),
    "cp-clean-unused-function": _entry("CWE-561"),
    "cp-clean-cyclomatic-complexity": _entry(),
    "cp-clean-function-too-long": _entry(),
    "cp-qual-prefer-const": _entry(),
    "cp-qual-unsafe-type-assertion": _entry("CWE-843"),
}

_EMPTY = CweOwaspEntry()


def get_cwe_owasp(rule_id: str) -> CweOwaspEntry:
    """Return CWE/OWASP data for a rule; unknown rules get an empty entry."""
    return CWE_OWASP_MAP.get(rule_id, _EMPTY)
