"""Tests for line and file-level pattern rules."""

from __future__ import annotations

import logging
import re

import pytest

from carapace.static.pattern_rules import (
    FILE_RULES,
    PATTERN_RULES,
    FileRule,
    PatternRule,
    shannon_entropy,
)
from carapace.static.pattern_scanner import scan_file_rule, scan_pattern_rule
from carapace.static.scanner import Scanner, default_scanner, scan_file


def _rule(rule_id: str) -> PatternRule:
    return next(rule for rule in PATTERN_RULES if rule.id == rule_id)


def _file_rule(rule_id: str) -> FileRule:
    return next(rule for rule in FILE_RULES if rule.id == rule_id)


def _scan(rule_id: str, path: str, *lines: str) -> list:
    return scan_pattern_rule(_rule(rule_id), path, list(lines))


def test_eval_reports_line_and_snippet() -> None:
    findings = _scan("cp-sec-eval", "src/calc.js", "const a = 1;", "const b = eval(input);", "const c = 2;")
    assert len(findings) == 1
    finding = findings[0]
    assert (finding.start_line, finding.end_line) == (2, 2)
    assert finding.severity == "high"
    assert finding.confidence == "high"
    assert finding.code_snippet == "const a = 1;\nconst b = eval(input);\nconst c = 2;"


def test_eval_ignores_comments_and_member_calls() -> None:
    assert _scan("cp-sec-eval", "src/calc.js", "// const b = eval(input);") == []
    assert _scan("cp-sec-eval", "src/calc.py", "# eval(expr) is not allowed here") == []
    assert _scan("cp-sec-eval", "src/calc.js", "const out = sandbox.eval(code);") == []


def test_rule_language_filter() -> None:
    assert _scan("cp-sec-eval", "contracts/Vault.sol", "eval(x);") == []


def test_hardcoded_secret_is_critical() -> None:
    findings = _scan("cp-sec-hardcoded-secret", "src/server.js", 'const apiKey = "sk_live_9f8a7b6c5d4e3f2a1b";')
    assert [item.severity for item in findings] == ["critical"]


@pytest.mark.parametrize(
    "line",
    [
        'const apiKey = "your-api-key-here";',
        'const apiKey = "xxxxxxxxxxxx";',
        'const password = "aaaaaaaaaaaa";',
        "const token = process.env.TOKEN || 'abcdefgh12';",
        'api_key = os.environ.get("API_KEY", "default-key-123")',
        'const secret = "abababababab";',
    ],
)
def test_secret_false_positives_are_skipped(line: str) -> None:
    assert _scan("cp-sec-hardcoded-secret", "src/server.js", line) == []


def test_secret_in_test_file_is_downgraded() -> None:
    findings = _scan(
        "cp-sec-hardcoded-secret",
        "src/__tests__/auth.test.js",
        'const apiKey = "sk_live_9f8a7b6c5d4e3f2a1b";',
    )
    assert [item.severity for item in findings] == ["info"]


def test_docs_paths_are_never_scanned() -> None:
    assert _scan("cp-sec-eval", "docs/guide.js", "eval(input);") == []
    assert _scan("cp-sec-eval", "README.md", "eval(input);") == []


def test_security_rules_skip_config_files() -> None:
    assert _scan("cp-sec-http-no-tls", "settings.json", '{"endpoint": "http://api.internal.net"}') == []


def test_http_url_gets_https_fix() -> None:
    line = 'const url = "http://api.internal.net/v1";'
    findings = _scan("cp-sec-http-no-tls", "src/client.js", line)
    assert len(findings) == 1
    assert findings[0].fix_diff == f'-{line}\n+const url = "https://api.internal.net/v1";'


@pytest.mark.parametrize(
    "line",
    [
        'const url = "http://localhost:3000/api";',
        'const ns = "http://www.w3.org/2000/svg";',
        'import lib from "http://cdn.internal.net/lib.js";',
    ],
)
def test_http_exemptions(line: str) -> None:
    assert _scan("cp-sec-http-no-tls", "src/client.js", line) == []


def test_hardcoded_ip() -> None:
    findings = _scan("cp-sec-hardcoded-ip", "src/net.js", 'const upstream = "10.0.4.12";')
    assert [(item.severity, item.confidence) for item in findings] == [("low", "medium")]
    assert _scan("cp-sec-hardcoded-ip", "src/net.js", 'const host = "127.0.0.1";') == []
    assert _scan("cp-sec-hardcoded-ip", "src/net.js", 'const version = "999.1.1.1";') == []


def test_weak_hash_fix_uses_sha256() -> None:
    line = "digest = hashlib.md5(data).hexdigest()"
    findings = _scan("cp-sec-md5-sha1", "src/hashing.py", line)
    assert findings[0].fix_diff == f"-{line}\n+digest = hashlib.sha256(data).hexdigest()"
    assert _scan("cp-sec-md5-sha1", "src/hashing.py", "hashlib.md5(data, usedforsecurity=False)") == []


def test_yaml_load_fix_and_safe_loader_skip() -> None:
    findings = _scan("cp-sec-unsafe-deserialization", "src/conf.py", "config = yaml.load(stream)")
    assert findings[0].fix_diff == "-config = yaml.load(stream)\n+config = yaml.safe_load(stream)"
    assert _scan(
        "cp-sec-unsafe-deserialization",
        "src/conf.py",
        "config = yaml.load(stream, Loader=yaml.SafeLoader)",
    ) == []


def test_injection_rules() -> None:
    sql = _scan("cp-sec-sql-injection", "src/db.js", 'db.query("SELECT * FROM users WHERE id = " + id);')
    assert [item.severity for item in sql] == ["critical"]
    assert _scan("cp-sec-command-injection", "src/run.py", "os.system(cmd)")
    assert _scan("cp-sec-command-injection", "src/run.py", "subprocess.run(args, check=True)") == []


def test_console_log_fix_deletes_line() -> None:
    findings = _scan("cp-qual-console-log", "src/app.js", "  console.log(value);")
    assert findings[0].fix_diff == "-  console.log(value);"
    assert _scan("cp-qual-console-log", "src/app.py", "console.log(value)") == []


def test_var_and_equality_fixes() -> None:
    var = _scan("cp-qual-var-usage", "src/app.js", "var count = 0;")
    assert var[0].fix_diff == "-var count = 0;\n+let count = 0;"

    equality = _scan("cp-qual-equality-coercion", "src/app.js", "if (count == limit) {")
    assert equality[0].fix_diff == "-if (count == limit) {\n+if (count === limit) {"
    assert _scan("cp-qual-equality-coercion", "src/app.js", "if (value == null) {") == []


def test_non_null_assertion_is_typescript_only() -> None:
    findings = _scan("cp-qual-non-null-assertion", "src/user.ts", "const name = user!.name;")
    assert findings[0].fix_diff == "-const name = user!.name;\n+const name = user?.name;"
    assert _scan("cp-qual-non-null-assertion", "src/user.js", "const name = user!.name;") == []


def test_todo_is_reported_inside_comments() -> None:
    findings = _scan("cp-qual-todo-fixme", "src/app.go", "// TODO: remove this fallback")
    assert [item.severity for item in findings] == ["info"]


def test_solidity_fixes() -> None:
    origin = _scan("cp-sol-tx-origin", "contracts/Vault.sol", "require(tx.origin == owner);")
    assert origin[0].fix_diff == "-require(tx.origin == owner);\n+require(msg.sender == owner);"

    pragma = _scan("cp-sol-floating-pragma", "contracts/Vault.sol", "pragma solidity ^0.8.0;")
    assert pragma[0].fix_diff == "-pragma solidity ^0.8.0;\n+pragma solidity 0.8.0;"


def test_ranges_limit_reported_lines() -> None:
    lines = ["eval(a);", "const x = 1;", "const y = 2;", "const z = 3;", "eval(b);"]
    findings = scan_pattern_rule(_rule("cp-sec-eval"), "src/app.js", lines, [(4, 6)])
    assert [item.start_line for item in findings] == [5]


def test_file_too_long() -> None:
    lines = ["x = 1"] * 501
    findings = scan_file_rule(_file_rule("cp-clean-file-too-long"), "src/big.py", lines)
    assert len(findings) == 1
    assert "501 lines" in findings[0].description
    assert scan_file_rule(_file_rule("cp-clean-file-too-long"), "src/big.py", lines[:500]) == []


def test_duplicate_block_is_reported_once() -> None:
    block = [
        "total = compute_total(order.items)",
        "tax = compute_tax(total, order.region)",
        "shipping = compute_shipping(order)",
        "invoice.amount = total + tax + shipping",
    ]
    findings = scan_file_rule(_file_rule("cp-clean-duplicate-code"), "src/billing.py", [*block, "", *block])
    assert [(item.start_line, item.end_line) for item in findings] == [(6, 9)]


def test_shannon_entropy() -> None:
    assert shannon_entropy("") == 0.0
    assert shannon_entropy("aaaa") == 0.0
    assert shannon_entropy("abcd") == 2.0


def test_scan_file_is_deterministic() -> None:
    content = 'var token = "sk_live_9f8a7b6c5d4e3f2a1b";\neval(token);\n'
    first = [item.model_dump() for item in scan_file("src/app.js", content)]
    second = [item.model_dump() for item in scan_file("src/app.js", content)]
    assert first == second
    assert {"cp-sec-hardcoded-secret", "cp-sec-eval", "cp-qual-var-usage"} <= {
        item["rule_id"] for item in first
    }


def test_default_scanner_respects_disabled_rules() -> None:
    findings = default_scanner(["cp-sec-eval"]).scan("src/app.js", "eval(input);\n")
    assert "cp-sec-eval" not in {item.rule_id for item in findings}


def test_broken_rule_does_not_hide_others(caplog: pytest.LogCaptureFixture) -> None:
    def explode(_line: str, _match: re.Match[str]) -> bool:
        raise RuntimeError("boom")

    broken = PatternRule(
        id="broken-rule",
        title="Broken",
        description="Always fails.",
        suggestion="",
        pattern=re.compile(r"eval"),
        severity="high",
        category="security",
        languages=("*",),
        skip=explode,
    )
    scanner = Scanner([broken, _rule("cp-sec-eval")])
    with caplog.at_level(logging.WARNING, logger="carapace"):
        findings = scanner.scan("src/app.js", "eval(input);")
    assert [item.rule_id for item in findings] == ["cp-sec-eval"]
    assert "broken-rule" in caplog.text


def test_failed_tree_analysis_keeps_pattern_findings(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    def explode(path: str, content: str) -> list:
        raise RuntimeError("grammar unavailable")

    monkeypatch.setattr("carapace.static.scanner.analyze_file", explode)
    with caplog.at_level(logging.WARNING, logger="carapace"):
        findings = default_scanner().scan("src/app.js", "const value = eval(input);\n")
    assert "cp-sec-eval" in {item.rule_id for item in findings}
    assert "syntax tree analysis failed on src/app.js" in caplog.text


@pytest.mark.parametrize(
    ("rule_id", "path", "line"),
    [
        ("cp-sec-timing-attack", "src/auth.js", "if (token === expectedToken) {"),
        ("cp-sec-timing-attack", "src/auth.py", "if signature == expected_signature:"),
        ("cp-sec-console-log-sensitive", "src/auth.js", 'console.log("user password", password);'),
        ("cp-sec-console-log-sensitive", "src/auth.py", 'logger.info("login token=%s", token)'),
        ("cp-sec-insecure-random", "src/session.js", "const token = Math.random().toString(36);"),
        ("cp-sec-insecure-random", "src/reset.py", "reset_code = random.randint(100000, 999999)"),
        ("cp-sec-jwt-none", "src/auth.js", 'jwt.verify(token, key, { algorithms: ["none"] });'),
        ("cp-sec-jwt-none", "src/auth.py", 'jwt.decode(token, key, algorithms=["none"])'),
        ("cp-sec-cors-wildcard", "src/server.js", 'res.setHeader("Access-Control-Allow-Origin", "*");'),
        ("cp-sec-cors-wildcard", "src/server.js", 'app.use(cors({ origin: "*" }));'),
        ("cp-sec-cors-wildcard", "src/main.py", 'app.add_middleware(CORSMiddleware, allow_origins=["*"])'),
        ("cp-sec-xss-innerhtml", "src/view.js", "panel.innerHTML = userInput;"),
        ("cp-sec-xss-innerhtml", "src/view.js", "document.write(html);"),
        ("cp-sec-path-traversal", "src/files.js", "fs.readFile(req.params.name, callback);"),
        ("cp-sec-path-traversal", "src/files.py", 'data = open(request.args["path"]).read()'),
        ("cp-sol-selfdestruct", "contracts/Vault.sol", "selfdestruct(payable(owner));"),
        ("cp-sol-delegatecall", "contracts/Proxy.sol", "(bool ok, ) = target.delegatecall(data);"),
        ("cp-sol-timestamp", "contracts/Lock.sol", "require(block.timestamp >= unlockTime);"),
        ("cp-qual-debugger", "src/app.js", "  debugger;"),
        ("cp-qual-debugger", "src/app.py", "import pdb; pdb.set_trace()"),
        ("cp-qual-alert", "src/app.js", 'alert("Saved!");'),
        ("cp-qual-any-type", "src/parse.ts", "function parse(input: any) {"),
        ("cp-qual-empty-catch", "src/app.js", "} catch (err) {}"),
        ("cp-qual-empty-catch", "src/app.py", "except ValueError: pass"),
        ("cp-qual-magic-number", "src/retry.js", "if (retries > 37) {"),
        ("cp-qual-magic-number", "src/cache.py", "expires = days * 86400"),
    ],
)
def test_rule_matches(rule_id: str, path: str, line: str) -> None:
    findings = _scan(rule_id, path, line)
    assert [item.rule_id for item in findings] == [rule_id]
    assert findings[0].severity == _rule(rule_id).severity


@pytest.mark.parametrize(
    ("rule_id", "path", "line"),
    [
        ("cp-sec-timing-attack", "src/auth.js", "if (token === null) {"),
        ("cp-sec-timing-attack", "src/auth.js", 'if (typeof token === "string") {'),
        ("cp-sec-console-log-sensitive", "src/auth.js", 'console.log("token length", token.length);'),
        ("cp-sec-console-log-sensitive", "src/auth.py", 'logger.debug("password=%s", redact(password))'),
        ("cp-sec-console-log-sensitive", "src/auth.py", 'print("has token:", token is not None)'),
        ("cp-sec-insecure-random", "src/retry.js", "const delay = Math.random() * 1000;"),
        ("cp-sec-insecure-random", "src/session.py", "token = secrets.token_hex(16)"),
        ("cp-sec-jwt-none", "src/auth.js", 'jwt.verify(token, key, { algorithms: ["HS256"] });'),
        ("cp-sec-jwt-none", "src/auth.js", '// algorithms: ["none"] is rejected upstream'),
        ("cp-sec-cors-wildcard", "src/server.js", 'app.use(cors({ origin: "https://app.internal.net" }));'),
        ("cp-sec-cors-wildcard", "settings.json", '{"Access-Control-Allow-Origin": "*"}'),
        ("cp-sec-xss-innerhtml", "src/view.js", 'panel.innerHTML = "";'),
        ("cp-sec-xss-innerhtml", "src/view.js", "if (panel.innerHTML === '') {"),
        ("cp-sec-path-traversal", "src/files.js", 'fs.readFile(path.join(__dirname, "index.html"), callback);'),
        ("cp-sec-path-traversal", "src/files.py", "data = open(settings.LOG_PATH).read()"),
        ("cp-sol-selfdestruct", "contracts/Vault.sol", "// selfdestruct(owner) was removed"),
        ("cp-sol-delegatecall", "contracts/Proxy.sol", "(bool ok, ) = target.call(data);"),
        ("cp-sol-timestamp", "contracts/Lock.sol", "uint256 createdAt = block.timestamp;"),
        ("cp-qual-debugger", "src/app.js", "const debuggerEnabled = true;"),
        ("cp-qual-debugger", "src/app.py", 'logger.debug("breakpoint() reached")'),
        ("cp-qual-alert", "src/app.js", "window.alert(message);"),
        ("cp-qual-alert", "src/app.js", "showAlert(message);"),
        ("cp-qual-any-type", "src/parse.js", "function parse(input: any) {"),
        ("cp-qual-any-type", "src/parse.ts", "const mode: anyMode = defaultMode;"),
        ("cp-qual-empty-catch", "src/app.js", "} catch (err) { logger.warn(err); }"),
        ("cp-qual-empty-catch", "src/app.py", "except KeyError: return None"),
        ("cp-qual-magic-number", "src/http.js", "if (response.status === 404) {"),
        ("cp-qual-magic-number", "src/limits.js", "const WINDOW_MS = SECONDS * 37;"),
    ],
)
def test_rule_false_positives_are_skipped(rule_id: str, path: str, line: str) -> None:
    assert _scan(rule_id, path, line) == []


def test_debugger_fix_deletes_line() -> None:
    findings = _scan("cp-qual-debugger", "src/app.py", "    breakpoint()")
    assert findings[0].fix_diff == "-    breakpoint()"


def test_mixed_quotes_reports_minority_style() -> None:
    lines = [f'const d{index} = "v{index}";' for index in range(8)]
    lines += [f"const s{index} = 'v{index}';" for index in range(2)]
    findings = scan_file_rule(_file_rule("cp-clean-mixed-quotes"), "src/strings.js", lines)
    assert [item.start_line for item in findings] == [9]
    assert "2 of 10 string lines use single quotes" in findings[0].description


@pytest.mark.parametrize("singles", [0, 1])
def test_mixed_quotes_tolerates_consistent_files(singles: int) -> None:
    lines = [f'const d{index} = "v{index}";' for index in range(20 - singles)]
    lines += [f"const s{index} = 'v{index}';" for index in range(singles)]
    assert scan_file_rule(_file_rule("cp-clean-mixed-quotes"), "src/strings.js", lines) == []
