"""Attacker-perspective rules: recon, auth, injection and API abuse."""

from carapace.findings import Severity
from carapace.rules.base import Rule


def _atk(rule_id: str, name: str, description: str, category: str, severity: Severity) -> Rule:
    return Rule(
        id=rule_id,
        name=name,
        description=description,
        category=category,
        severity=severity,
        ruleset="attack",
    )


ATTACK_RULES: tuple[Rule, ...] = (
    _atk(
        "atk-missing-security-headers",
        "Missing Security Headers",
        "HTTP responses without CSP, HSTS, X-Frame-Options or similar hardening headers.",
        "recon",
        "medium",
    ),
    _atk(
        "atk-cors-misconfiguration",
        "CORS Misconfiguration",
        "Wildcard or reflected origins, especially combined with credentials.",
        "recon",
        "high",
    ),
    _atk(
        "atk-no-rate-limiting",
        "Missing Rate Limiting",
        "Public or authentication endpoints without throttling.",
        "recon",
        "medium",
    ),
    _atk(
        "atk-tls-weakness",
        "TLS/Certificate Weakness",
        "Disabled certificate verification, plaintext transport, or weak TLS versions.",
        "recon",
        "high",
    ),
    _atk(
        "atk-brute-force-vector",
        "Brute Force Vector",
        "Login, OTP or reset flows without lockout or attempt limits.",
        "auth",
        "high",
    ),
    _atk(
        "atk-session-management",
        "Session Management Weakness",
        "Session fixation, missing rotation on login, or tokens without expiry.",
        "auth",
        "high",
    ),
    _atk(
        "atk-insecure-cookie",
        "Insecure Cookie Configuration",
        "Session cookies missing Secure, HttpOnly or SameSite attributes.",
        "auth",
        "high",
    ),
    _atk(
        "atk-sqli",
        "SQL Injection",
        "Queries built by concatenating or interpolating request data.",
        "injection",
        "critical",
    ),
    _atk(
        "atk-xss",
        "Cross-Site Scripting (XSS)",
        "Untrusted data rendered as HTML without escaping.",
        "injection",
        "high",
    ),
    _atk(
        "atk-command-injection",
        "Command Injection",
        "Shell commands assembled from user-controlled input.",
        "injection",
        "critical",
    ),
    _atk(
        "atk-ssrf",
        "Server-Side Request Forgery",
        "Outbound requests to URLs taken from user input without an allow-list.",
        "injection",
        "high",
    ),
    _atk(
        "atk-path-traversal",
        "Path Traversal",
        "File system paths joined with user input without normalization checks.",
        "injection",
        "high",
    ),
    _atk(
        "atk-idor",
        "IDOR (Insecure Direct Object Reference)",
        "Records fetched by client-supplied id without an ownership check.",
        "api",
        "critical",
    ),
    _atk(
        "atk-mass-assignment",
        "Mass Assignment",
        "Request bodies bound directly onto models, exposing privileged fields.",
        "api",
        "high",
    ),
)
