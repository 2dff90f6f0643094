"""Line-oriented pattern rules and file-level heuristics."""

from __future__ import annotations

import math
import re
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from re import Match, Pattern

from carapace.findings import Confidence, Severity
from carapace.static.base import ALL, JAVA, JS_TS, PY, SOL, TS_ONLY, SOURCE_EXTENSIONS

LineFix = Callable[[str], str | None]
LineSkip = Callable[[str, Match[str]], bool]


@dataclass(frozen=True, slots=True)
class PatternRule:
    """Regex rule applied to every line of a matching file.

    ``fix`` maps the matched line to its replacement; returning ``None``
    deletes the line. ``skip`` vetoes an individual match.
    """

    id: str
    title: str
    description: str
    suggestion: str
    pattern: Pattern[str]
    severity: Severity
    category: str
    languages: tuple[str, ...]
    confidence: Confidence = "high"
    fix: LineFix | None = None
    skip: LineSkip | None = None


@dataclass(frozen=True, slots=True)
class FileHit:
    start_line: int
    end_line: int
    message: str


@dataclass(frozen=True, slots=True)
class FileRule:
    """Heuristic evaluated once over a whole file's lines."""

    id: str
    title: str
    description: str
    suggestion: str
    check: Callable[[Sequence[str]], list[FileHit]]
    severity: Severity
    category: str
    languages: tuple[str, ...]
    confidence: Confidence = "high"


def _delete_line(_line: str) -> str | None:
    return None


# --- secrets -----------------------------------------------------------------

SECRET_RE = re.compile(
    r"(?i)\b\w*(?:api[_-]?key|secret|passw(?:or)?d|token|private[_-]?key|access[_-]?key|"
    r"client[_-]?secret|auth[_-]?key)\w*[\"']?\s*[:=]\s*[\"'`](?P<value>[^\"'`\s]{8,})[\"'`]"
)
PLACEHOLDER_RE = re.compile(
    r"(?i)(?:x{3,}|\*{3,}|your[_-]|<[^>]*>|\$\{|\{\{|changeme|change[_-]me|example|"
    r"placeholder|dummy|sample|todo|replace[_-]?me|redacted|test[_-]?(?:key|token|secret))"
)
MIN_SECRET_ENTROPY = 3.0


def shannon_entropy(value: str) -> float:
    if not value:
        return 0.0
    counts = Counter(value)
    total = len(value)
    return -sum((count / total) * math.log2(count / total) for count in counts.values())


def _skip_secret(_line: str, match: Match[str]) -> bool:
    value = match.group("value")
    if PLACEHOLDER_RE.search(value):
        return True
    if len(set(value)) <= 2:
        return True
    return shannon_entropy(value) < MIN_SECRET_ENTROPY


# --- network -----------------------------------------------------------------

ALLOWED_IPS = frozenset({"127.0.0.1", "0.0.0.0", "255.255.255.255"})
IP_RE = re.compile(r"[\"'`](?P<ip>(?:\d{1,3}\.){3}\d{1,3})(?::\d+)?[\"'`/]")


def _skip_ip(_line: str, match: Match[str]) -> bool:
    ip = match.group("ip")
    if ip in ALLOWED_IPS:
        return True
    return any(int(octet) > 255 for octet in ip.split("."))


HTTP_RE = re.compile(
    r"[\"'`]http://(?!localhost\b|127\.0\.0\.1\b|0\.0\.0\.0\b|\[::1\])[^\"'`\s]+"
)


def _skip_http(line: str, _match: Match[str]) -> bool:
    lowered = line.lower()
    return "www.w3.org" in lowered or "xmlns" in lowered or "schemas." in lowered


def _fix_http(line: str) -> str | None:
    return re.sub(
        r"([\"'`])http://(?!localhost\b|127\.0\.0\.1\b|0\.0\.0\.0\b|\[::1\])",
        r"\1https://",
        line,
        count=1,
    )


# --- crypto ------------------------------------------------------------------

WEAK_HASH_RE = re.compile(
    r"(?i)(?:createHash\(\s*[\"'](?:md5|sha1)[\"']|\bhashlib\.(?:md5|sha1)\s*\(|"
    r"MessageDigest\.getInstance\(\s*\"(?:MD5|SHA-?1)\")"
)


def _skip_weak_hash(line: str, _match: Match[str]) -> bool:
    return "usedforsecurity=False" in line.replace(" ", "")


def _fix_weak_hash(line: str) -> str | None:
    fixed = re.sub(r"(createHash\(\s*)([\"'])(?:md5|sha1)\2", r"\1\2sha256\2", line, flags=re.I)
    fixed = re.sub(r"\bhashlib\.(?:md5|sha1)(\s*\()", r"hashlib.sha256\1", fixed, flags=re.I)
    fixed = re.sub(
        r"(MessageDigest\.getInstance\(\s*)\"(?:MD5|SHA-?1)\"",
        r'\1"SHA-256"',
        fixed,
        flags=re.I,
    )
    return fixed


TIMING_RE = re.compile(
    r"(?i)\b[\w.]*(?:token|secret|password|passwd|signature|hmac|digest|api_?key)\w*"
    r"\s*(?:===?|!==?)\s*(?P<rhs>[^\s;)]+)"
)
_BENIGN_COMPARANDS = frozenset(
    {"null", "undefined", "false", "true", '""', "''", "none", "0", "nil"}
)


def _skip_timing(line: str, match: Match[str]) -> bool:
    rhs = match.group("rhs").strip().rstrip(",").lower()
    if rhs in _BENIGN_COMPARANDS:
        return True
    lowered = line.lower()
    return ".length" in lowered or "typeof " in lowered or "len(" in lowered


INSECURE_RANDOM_RE = re.compile(
    r"(?i)\b\w*(?:token|secret|password|salt|nonce|otp|session|key|code)\w*\s*[:=].*"
    r"(?:Math\.random\s*\(|\brandom\.(?:random|randint|choice|getrandbits)\s*\()"
)

JWT_NONE_RE = re.compile(r"(?i)algorithms?[\"']?\s*[:=]\s*\[?\s*[\"']none[\"']")

# --- injection ---------------------------------------------------------------

_SQL_VERB = r"(?:SELECT\b[^\"'`]*\bFROM|INSERT\s+INTO|UPDATE\s+\w+\s+SET|DELETE\s+FROM)"
SQL_INJECTION_RE = re.compile(
    rf"(?i)(?:[\"']{_SQL_VERB}[^\"']*[\"']\s*\+"
    rf"|`{_SQL_VERB}[^`]*\$\{{"
    rf"|\bf[\"']{_SQL_VERB}[^\"']*\{{"
    r"|\.(?:execute|query|raw)\(\s*[\"'][^\"']*[\"']\s*(?:%|\.format\())"
)

COMMAND_INJECTION_RE = re.compile(
    r"(?:\bexec(?:Sync)?\s*\(\s*(?:`[^`]*\$\{|[\"'][^\"']*[\"']\s*\+)"
    r"|\bos\.system\s*\(|\bos\.popen\s*\("
    r"|\bsubprocess\.\w+\(.*\bshell\s*=\s*True)"
)

EVAL_RE = re.compile(r"(?<![\w.$])(?:eval\s*\(|new\s+Function\s*\()")

XSS_RE = re.compile(
    r"(?:\.(?:innerHTML|outerHTML)\s*\+?=(?!=)\s*(?P<rhs>[^;]*)"
    r"|dangerouslySetInnerHTML|document\.write\s*\()"
)


def _skip_xss(_line: str, match: Match[str]) -> bool:
    rhs = (match.group("rhs") or "").strip()
    return rhs in {'""', "''", "``"}


DESERIALIZATION_RE = re.compile(
    r"\bpickle\.loads?\s*\(|\bmarshal\.loads?\s*\(|\byaml\.load\s*\(|\byaml\.unsafe_load\s*\("
)
SAFE_LOADER_RE = re.compile(r"Loader\s*=\s*(?:yaml\.)?C?SafeLoader")


def _skip_yaml_safe_loader(line: str, _match: Match[str]) -> bool:
    if "yaml.load(" not in line:
        return False
    return SAFE_LOADER_RE.search(line) is not None


def _fix_yaml_load(line: str) -> str | None:
    if "yaml.load(" not in line or "Loader" in line:
        return line
    return line.replace("yaml.load(", "yaml.safe_load(", 1)


PATH_TRAVERSAL_RE = re.compile(
    r"(?:(?:readFile(?:Sync)?|createReadStream|sendFile|unlink(?:Sync)?|path\.join)\s*\([^)]*"
    r"\breq\.(?:params|query|body)"
    r"|\bopen\s*\([^)]*\brequest\.(?:args|form|GET|POST|values))"
)

CORS_WILDCARD_RE = re.compile(
    r"(?i)(?:Access-Control-Allow-Origin[\"']?\s*[:,]\s*[\"']\*[\"']"
    r"|\borigin[\"']?\s*:\s*[\"']\*[\"']"
    r"|allow_origins\s*=\s*\[\s*[\"']\*[\"']\s*\])"
)

SENSITIVE_LOG_RE = re.compile(
    r"(?i)(?:\bconsole\.(?:log|info|debug|warn|error)|\bprint"
    r"|\blogger\.\w+|\blogging\.\w+|\blog\.\w+)\s*\(.*\b(?:password|passwd|secret|token|api_?key|private_?key|credential|ssn)s?\b"
)


def _skip_sensitive_log(line: str, _match: Match[str]) -> bool:
    lowered = line.lower()
    markers = ("redact(", "mask(", "!!", ".length", "len(", "is not none", "!= null", "boolean(")
    return any(marker in lowered for marker in markers)


# --- quality -----------------------------------------------------------------

CONSOLE_LOG_RE = re.compile(r"^\s*console\.(?:log|debug|info|trace)\s*\(.*\)\s*;?\s*$")
DEBUGGER_RE = re.compile(
    r"^\s*(?:debugger\s*;?|breakpoint\(\)|(?:import\s+pdb\s*;\s*)?pdb\.set_trace\(\))\s*$"
)
ALERT_RE = re.compile(r"(?<![\w.$])alert\s*\(")
VAR_RE = re.compile(r"^\s*(?:export\s+)?var\s+[\w${[]")


def _fix_var(line: str) -> str | None:
    return re.sub(r"\bvar\b", "let", line, count=1)


EQUALITY_RE = re.compile(r"(?<![=!<>])(?:==|!=)(?!=)")


def _skip_equality(line: str, _match: Match[str]) -> bool:
    # "x == null" intentionally matches both null and undefined.
    return re.search(r"(?<![=!<>])(?:==|!=)(?!=)\s*null\b", line) is not None


def _fix_equality(line: str) -> str | None:
    return EQUALITY_RE.sub(lambda match: match.group(0) + "=", line)


NON_NULL_RE = re.compile(r"(?<=[\w)\]])!\.")


def _fix_non_null(line: str) -> str | None:
    return NON_NULL_RE.sub("?.", line)


ANY_TYPE_RE = re.compile(r":\s*any\b(?!\w)")
EMPTY_CATCH_RE = re.compile(r"catch\s*(?:\([^)]*\))?\s*\{\s*\}|^\s*except[^:]*:\s*pass\s*$")
TODO_RE = re.compile(r"\b(?:TODO|FIXME|HACK|XXX)\b")

MAGIC_NUMBER_RE = re.compile(r"(?:[<>]=?|[=!]==?|[*/%])\s*(?P<number>-?\d{2,}(?:\.\d+)?)\b")
ALLOWED_NUMBERS = frozenset(
    {
        "10", "12", "16", "24", "32", "60", "64", "100", "128", "200", "201", "204",
        "256", "301", "302", "304", "360", "400", "401", "403", "404", "409", "422",
        "429", "500", "502", "503", "512", "1000", "1024", "3000", "8080",
    }
)


def _skip_magic_number(line: str, match: Match[str]) -> bool:
    number = match.group("number").lstrip("-")
    if number in ALLOWED_NUMBERS:
        return True
    stripped = line.strip()
    return re.match(r"^(?:export\s+)?(?:const\s+)?[A-Z][A-Z0-9_]*\s*[:=]", stripped) is not None


# --- solidity ----------------------------------------------------------------

TX_ORIGIN_RE = re.compile(r"tx\.origin\s*[!=]=|[!=]=\s*tx\.origin")


def _fix_tx_origin(line: str) -> str | None:
    return line.replace("tx.origin", "msg.sender")


FLOATING_PRAGMA_RE = re.compile(r"pragma\s+solidity\s+\^")


def _fix_floating_pragma(line: str) -> str | None:
    return re.sub(r"(pragma\s+solidity\s+)\^", r"\1", line, count=1)


# --- file-level heuristics -----------------------------------------------------

MAX_FILE_LINES = 500
DUPLICATE_WINDOW = 4
DUPLICATE_MIN_CHARS = 40


def check_file_too_long(lines: Sequence[str]) -> list[FileHit]:
    count = len(lines)
    if lines and lines[-1] == "":
        count -= 1
    if count <= MAX_FILE_LINES:
        return []
    return [FileHit(1, 1, f"File has {count} lines (limit {MAX_FILE_LINES}).")]


def check_duplicate_code(lines: Sequence[str]) -> list[FileHit]:
    """Report each 4-line block that repeats an earlier block verbatim (ignoring indent)."""
    seen: dict[str, int] = {}
    hits: list[FileHit] = []
    index = 0
    while index + DUPLICATE_WINDOW <= len(lines):
        window = [line.strip() for line in lines[index : index + DUPLICATE_WINDOW]]
        if any(_trivial_line(line) for line in window):
            index += 1
            continue
        key = "\n".join(window)
        if len(key) < DUPLICATE_MIN_CHARS:
            index += 1
            continue
        first = seen.get(key)
        if first is not None and first + DUPLICATE_WINDOW <= index:
            hits.append(
                FileHit(
                    index + 1,
                    index + DUPLICATE_WINDOW,
                    f"Lines {index + 1}-{index + DUPLICATE_WINDOW} duplicate lines "
                    f"{first + 1}-{first + DUPLICATE_WINDOW}.",
                )
            )
            index += DUPLICATE_WINDOW
            continue
        seen.setdefault(key, index)
        index += 1
    return hits


_TRIVIAL_LINES = frozenset({"{", "}", "};", "});", ")", "]", "*/", "/*"})


def _trivial_line(stripped: str) -> bool:
    if not stripped or stripped in _TRIVIAL_LINES:
        return True
    return stripped.startswith(("//", "#", "*", "import ", "from "))


SINGLE_QUOTED_RE = re.compile(r"'[^'\n]*'")
DOUBLE_QUOTED_RE = re.compile(r"\"[^\"\n]*\"")
MIXED_QUOTES_MIN_STRINGS = 10
MIXED_QUOTES_MIN_SHARE = 0.1


def check_mixed_quotes(lines: Sequence[str]) -> list[FileHit]:
    """Flag files whose string literals split between quote styles."""
    single_lines: list[int] = []
    double_lines: list[int] = []
    for number, line in enumerate(lines, start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith(("//", "*", "/*")):
            continue
        code = re.sub(r"`[^`]*`", "", stripped)
        if SINGLE_QUOTED_RE.search(code) and not DOUBLE_QUOTED_RE.search(code):
            single_lines.append(number)
        elif DOUBLE_QUOTED_RE.search(code) and not SINGLE_QUOTED_RE.search(code):
            double_lines.append(number)

    total = len(single_lines) + len(double_lines)
    if total < MIXED_QUOTES_MIN_STRINGS or not single_lines or not double_lines:
        return []
    minority, style = (
        (single_lines, "single")
        if len(single_lines) <= len(double_lines)
        else (double_lines, "double")
    )
    if len(minority) / total < MIXED_QUOTES_MIN_SHARE:
        return []
    line = minority[0]
    return [
        FileHit(
            line,
            line,
            f"{len(minority)} of {total} string lines use {style} quotes; pick one style.",
        )
    ]


SOURCE_LANGUAGES = tuple(sorted(SOURCE_EXTENSIONS))

PATTERN_RULES: tuple[PatternRule, ...] = (
    PatternRule(
        id="cp-sec-eval",
        title="Dynamic code evaluation",
        description="eval() or new Function() executes strings as code and enables code injection.",
        suggestion="Replace dynamic evaluation with explicit parsing or a dispatch table.",
        pattern=EVAL_RE,
        severity="high",
        category="security",
        languages=JS_TS + PY,
    ),
    PatternRule(
        id="cp-sec-hardcoded-secret",
        title="Hardcoded secret",
        description="A credential-like literal is committed to source.",
        suggestion="Load the value from the environment or a secret manager and rotate it.",
        pattern=SECRET_RE,
        severity="critical",
        category="security",
        languages=ALL,
        skip=_skip_secret,
    ),
    PatternRule(
        id="cp-sec-hardcoded-ip",
        title="Hardcoded IP address",
        description="A literal IP address couples the code to one deployment and leaks topology.",
        suggestion="Move the address into configuration.",
        pattern=IP_RE,
        severity="low",
        category="security",
        languages=ALL,
        confidence="medium",
        skip=_skip_ip,
    ),
    PatternRule(
        id="cp-sec-http-no-tls",
        title="Plaintext HTTP URL",
        description="Traffic to this URL is sent without TLS.",
        suggestion="Use https://.",
        pattern=HTTP_RE,
        severity="medium",
        category="security",
        languages=ALL,
        fix=_fix_http,
        skip=_skip_http,
    ),
    PatternRule(
        id="cp-sec-md5-sha1",
        title="Weak hash algorithm",
        description="MD5 and SHA-1 are broken for collision resistance.",
        suggestion="Use SHA-256 or a dedicated password hash such as bcrypt or argon2.",
        pattern=WEAK_HASH_RE,
        severity="medium",
        category="security",
        languages=JS_TS + PY + JAVA,
        fix=_fix_weak_hash,
        skip=_skip_weak_hash,
    ),
    PatternRule(
        id="cp-sec-timing-attack",
        title="Non-constant-time secret comparison",
        description="Comparing secrets with == leaks their value through response timing.",
        suggestion="Use crypto.timingSafeEqual or hmac.compare_digest.",
        pattern=TIMING_RE,
        severity="medium",
        category="security",
        languages=JS_TS + PY,
        confidence="medium",
        skip=_skip_timing,
    ),
    PatternRule(
        id="cp-sec-console-log-sensitive",
        title="Sensitive value logged",
        description="A secret-bearing value is written to logs.",
        suggestion="Remove the value from the log call or redact it.",
        pattern=SENSITIVE_LOG_RE,
        severity="high",
        category="security",
        languages=JS_TS + PY,
        confidence="medium",
        skip=_skip_sensitive_log,
    ),
    PatternRule(
        id="cp-sec-sql-injection",
        title="SQL built from string interpolation",
        description="Query text is assembled from variables, allowing SQL injection.",
        suggestion="Use parameterized queries or the ORM's binding API.",
        pattern=SQL_INJECTION_RE,
        severity="critical",
        category="security",
        languages=JS_TS + PY + JAVA,
    ),
    PatternRule(
        id="cp-sec-command-injection",
        title="Shell command injection",
        description="A shell command is executed with interpolated or shell-expanded input.",
        suggestion="Pass an argument list to execFile/subprocess.run without a shell.",
        pattern=COMMAND_INJECTION_RE,
        severity="critical",
        category="security",
        languages=JS_TS + PY,
    ),
    PatternRule(
        id="cp-sec-insecure-random",
        title="Insecure randomness for secrets",
        description="Math.random/random are predictable and unsuitable for tokens or keys.",
        suggestion="Use crypto.randomBytes / crypto.randomUUID or the secrets module.",
        pattern=INSECURE_RANDOM_RE,
        severity="high",
        category="security",
        languages=JS_TS + PY,
        confidence="medium",
    ),
    PatternRule(
        id="cp-sec-jwt-none",
        title="JWT 'none' algorithm accepted",
        description="Accepting alg=none lets anyone forge tokens.",
        suggestion="Pin the expected signing algorithm explicitly.",
        pattern=JWT_NONE_RE,
        severity="critical",
        category="security",
        languages=JS_TS + PY + JAVA,
    ),
    PatternRule(
        id="cp-sec-cors-wildcard",
        title="Wildcard CORS origin",
        description="Any origin may read responses from this endpoint.",
        suggestion="Restrict allowed origins to a known list.",
        pattern=CORS_WILDCARD_RE,
        severity="medium",
        category="security",
        languages=JS_TS + PY,
    ),
    PatternRule(
        id="cp-sec-xss-innerhtml",
        title="Unescaped HTML sink",
        description="Writing to innerHTML or document.write renders untrusted markup.",
        suggestion="Use textContent or a sanitizer such as DOMPurify.",
        pattern=XSS_RE,
        severity="high",
        category="security",
        languages=JS_TS,
        skip=_skip_xss,
    ),
    PatternRule(
        id="cp-sec-unsafe-deserialization",
        title="Unsafe deserialization",
        description="pickle, marshal and yaml.load can execute code embedded in their input.",
        suggestion="Use yaml.safe_load or a data-only format such as JSON.",
        pattern=DESERIALIZATION_RE,
        severity="high",
        category="security",
        languages=PY,
        fix=_fix_yaml_load,
        skip=_skip_yaml_safe_loader,
    ),
    PatternRule(
        id="cp-sec-path-traversal",
        title="Path built from request input",
        description="Request parameters reach a file system call without normalization.",
        suggestion="Resolve the path and verify it stays inside an allowed base directory.",
        pattern=PATH_TRAVERSAL_RE,
        severity="high",
        category="security",
        languages=JS_TS + PY,
        confidence="medium",
    ),
    PatternRule(
        id="cp-sol-tx-origin",
        title="tx.origin used for authorization",
        description="tx.origin is the original sender and can be spoofed through an intermediate contract.",
        suggestion="Compare against msg.sender.",
        pattern=TX_ORIGIN_RE,
        severity="high",
        category="security",
        languages=SOL,
        fix=_fix_tx_origin,
    ),
    PatternRule(
        id="cp-sol-selfdestruct",
        title="selfdestruct reachable",
        description="selfdestruct permanently removes the contract and forwards its balance.",
        suggestion="Remove selfdestruct or guard it behind strict access control.",
        pattern=re.compile(r"\bselfdestruct\s*\("),
        severity="high",
        category="security",
        languages=SOL,
    ),
    PatternRule(
        id="cp-sol-delegatecall",
        title="delegatecall to external code",
        description="delegatecall runs foreign code against this contract's storage.",
        suggestion="Only delegatecall into immutable, audited implementation addresses.",
        pattern=re.compile(r"\.delegatecall\s*\("),
        severity="high",
        category="security",
        languages=SOL,
        confidence="medium",
    ),
    PatternRule(
        id="cp-sol-floating-pragma",
        title="Floating compiler pragma",
        description="A caret pragma lets contracts compile with untested compiler versions.",
        suggestion="Pin the exact compiler version.",
        pattern=FLOATING_PRAGMA_RE,
        severity="low",
        category="quality",
        languages=SOL,
        fix=_fix_floating_pragma,
    ),
    PatternRule(
        id="cp-sol-timestamp",
        title="block.timestamp in a condition",
        description="Validators can skew block.timestamp by several seconds.",
        suggestion="Avoid timestamp checks for randomness or tight deadlines.",
        pattern=re.compile(r"(?:require|if)\s*\(.*block\.timestamp"),
        severity="low",
        category="security",
        languages=SOL,
        confidence="medium",
    ),
    PatternRule(
        id="cp-qual-console-log",
        title="Leftover console logging",
        description="Debug console output left in committed code.",
        suggestion="Remove the statement or use the project logger.",
        pattern=CONSOLE_LOG_RE,
        severity="low",
        category="quality",
        languages=JS_TS,
        fix=_delete_line,
    ),
    PatternRule(
        id="cp-qual-debugger",
        title="Debugger breakpoint",
        description="A debugger statement halts execution when devtools or pdb are attached.",
        suggestion="Remove the breakpoint.",
        pattern=DEBUGGER_RE,
        severity="medium",
        category="quality",
        languages=JS_TS + PY,
        fix=_delete_line,
    ),
    PatternRule(
        id="cp-qual-alert",
        title="alert() call",
        description="alert() blocks the UI thread and is rarely intended in production.",
        suggestion="Use an in-page notification component.",
        pattern=ALERT_RE,
        severity="low",
        category="quality",
        languages=JS_TS,
    ),
    PatternRule(
        id="cp-qual-var-usage",
        title="var declaration",
        description="var is function-scoped and hoisted, which hides bugs.",
        suggestion="Use let or const.",
        pattern=VAR_RE,
        severity="low",
        category="quality",
        languages=JS_TS,
        fix=_fix_var,
    ),
    PatternRule(
        id="cp-qual-equality-coercion",
        title="Loose equality",
        description="== and != coerce operand types before comparing.",
        suggestion="Use === and !==.",
        pattern=EQUALITY_RE,
        severity="low",
        category="quality",
        languages=JS_TS,
        fix=_fix_equality,
        skip=_skip_equality,
    ),
    PatternRule(
        id="cp-qual-non-null-assertion",
        title="Non-null assertion",
        description="The ! operator silences the compiler without checking the value.",
        suggestion="Use optional chaining or an explicit guard.",
        pattern=NON_NULL_RE,
        severity="low",
        category="quality",
        languages=TS_ONLY,
        confidence="medium",
        fix=_fix_non_null,
    ),
    PatternRule(
        id="cp-qual-any-type",
        title="Explicit any type",
        description="Annotating with any disables type checking for the value.",
        suggestion="Use a concrete type or unknown.",
        pattern=ANY_TYPE_RE,
        severity="low",
        category="quality",
        languages=TS_ONLY,
    ),
    PatternRule(
        id="cp-qual-empty-catch",
        title="Empty exception handler",
        description="Errors are caught and silently discarded.",
        suggestion="Log, rethrow, or handle the error explicitly.",
        pattern=EMPTY_CATCH_RE,
        severity="medium",
        category="quality",
        languages=JS_TS + PY + JAVA,
    ),
    PatternRule(
        id="cp-qual-magic-number",
        title="Magic number",
        description="An unexplained numeric literal drives logic.",
        suggestion="Extract the value into a named constant.",
        pattern=MAGIC_NUMBER_RE,
        severity="info",
        category="quality",
        languages=JS_TS + PY,
        confidence="low",
        skip=_skip_magic_number,
    ),
    PatternRule(
        id="cp-qual-todo-fixme",
        title="Unresolved TODO/FIXME",
        description="A marker for unfinished work was committed.",
        suggestion="Resolve it or track it in the issue tracker.",
        pattern=TODO_RE,
        severity="info",
        category="quality",
        languages=ALL,
    ),
)

FILE_RULES: tuple[FileRule, ...] = (
    FileRule(
        id="cp-clean-file-too-long",
        title="File too long",
        description="Very long files usually hold several responsibilities.",
        suggestion="Split the module by responsibility.",
        check=check_file_too_long,
        severity="info",
        category="quality",
        languages=SOURCE_LANGUAGES,
    ),
    FileRule(
        id="cp-clean-duplicate-code",
        title="Duplicated block",
        description="The same block of code appears more than once in this file.",
        suggestion="Extract the shared lines into a function.",
        check=check_duplicate_code,
        severity="low",
        category="quality",
        languages=SOURCE_LANGUAGES,
        confidence="medium",
    ),
    FileRule(
        id="cp-clean-mixed-quotes",
        title="Mixed quote styles",
        description="String literals alternate between single and double quotes.",
        suggestion="Adopt one quote style, ideally enforced by a formatter.",
        check=check_mixed_quotes,
        severity="info",
        category="quality",
        languages=JS_TS,
        confidence="low",
    ),
)

# Rules whose literal matches frequently sit on import lines.
IMPORT_SENSITIVE_RULES = frozenset({"cp-sec-http-no-tls", "cp-sec-hardcoded-ip", "cp-sec-hardcoded-secret"})
# Rules that look at secret-like values and share placeholder suppression.
SECRET_CONTEXT_RULES = frozenset({"cp-sec-hardcoded-secret", "cp-sec-console-log-sensitive"})
# Rules allowed to match inside comments.
COMMENT_RULES = frozenset({"cp-qual-todo-fixme"})
