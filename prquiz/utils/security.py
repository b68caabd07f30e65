"""Redaction of credential-shaped text before it is embedded in an LLM prompt.

Every rule replaces its match with a ``[REDACTED:<kind>]`` marker. No rule
can match a marker, and each rule refuses to start a value at ``[REDACTED``,
so running :func:`sanitize` on its own output changes nothing.

Over-redaction is acceptable; leaking one of the listed shapes is not.
"""
import re

_KEY_WORDS = r"(?:secret|token|password|passwd|key)"
_TOKEN_CHARS = r"A-Za-z0-9+/_\-.~"
_LITERALS = r"(?:none|null|nil|true|false)"

_RULES: list[tuple[re.Pattern[str], str]] = [
    # PEM / OpenSSH private keys: keep the armor lines, blank the body.
    (
        re.compile(
            r"(-----BEGIN ((?:[A-Z0-9]+ )*)PRIVATE KEY-----)(.*?)(-----END \2PRIVATE KEY-----)",
            re.DOTALL,
        ),
        r"\1\n[REDACTED:private-key]\n\4",
    ),
    # Authorization header values, with or without a scheme.
    (
        re.compile(
            r"\b(authorization[\"']?\s*[:=]\s*[\"']?)(?!\[REDACTED)"
            r"(?:(?:bearer|token|basic)\s+)?[^\s\"',;]+",
            re.IGNORECASE,
        ),
        r"\1[REDACTED:credential]",
    ),
    (
        re.compile(r"\b(bearer)\s+(?!\[REDACTED)[A-Za-z0-9\-._~+/]{16,}=*", re.IGNORECASE),
        r"\1 [REDACTED:bearer]",
    ),
    # JWT: base64url header (always "eyJ"), payload and signature.
    (
        re.compile(r"\beyJ[A-Za-z0-9_-]{7,}\.[A-Za-z0-9_-]{8,}\.[A-Za-z0-9_-]{8,}"),
        "[REDACTED:jwt]",
    ),
    # Vendor tokens.
    (re.compile(r"\bgh[pousr]_[A-Za-z0-9]{30,}"), "[REDACTED:github-token]"),
    (re.compile(r"\bgithub_pat_[A-Za-z0-9_]{22,}"), "[REDACTED:github-token]"),
    (re.compile(r"\bxox[abprs]-[A-Za-z0-9-]{10,}"), "[REDACTED:slack-token]"),
    (re.compile(r"\bsk-ant-[A-Za-z0-9_-]{20,}"), "[REDACTED:anthropic-key]"),
    (re.compile(r"\bsk-(?:proj-)?[A-Za-z0-9_-]{20,}"), "[REDACTED:openai-key]"),
    (re.compile(r"\bAIza[0-9A-Za-z_-]{35}"), "[REDACTED:google-key]"),
    (re.compile(r"\b[sr]k_(?:live|test)_[A-Za-z0-9]{16,}"), "[REDACTED:stripe-key]"),
    # Cloud access key ids.
    (
        re.compile(r"\b(?:AKIA|ASIA|AGPA|AIDA|AROA|ANPA|ANVA|AIPA)[A-Z0-9]{16}\b"),
        "[REDACTED:aws-access-key]",
    ),
    # "password": "hunter2" / api_key = 'abc' / secret: "x"
    (
        re.compile(
            rf"([\"']?[\w.-]*{_KEY_WORDS}[\w.-]*[\"']?\s*[:=]\s*)([\"'])(?!\[REDACTED)[^\"'\n]+\2",
            re.IGNORECASE,
        ),
        r"\1\2[REDACTED:secret]\2",
    ),
    # password=hunter2 / X-Api-Key: abc123 (calls, subscripts and plain literals are left alone)
    (
        re.compile(
            rf"(\b[\w.-]*{_KEY_WORDS}[\w.-]*[ \t]*[:=][ \t]*)(?!\[REDACTED)"
            rf"(?!{_LITERALS}(?![{_TOKEN_CHARS}]))"
            rf"[{_TOKEN_CHARS}]+=*(?![{_TOKEN_CHARS}(\[=])",
            re.IGNORECASE,
        ),
        r"\1[REDACTED:secret]",
    ),
    # Catch-all: long base64/hex-looking runs with both letters and digits.
    (
        re.compile(
            r"(?<![A-Za-z0-9+/_-])(?=[A-Za-z+/_-]*[0-9])(?=[0-9+/_-]*[A-Za-z])"
            r"[A-Za-z0-9+/_-]{30,}={0,2}(?![A-Za-z0-9+/_=-])"
        ),
        "[REDACTED:token]",
    ),
]


def sanitize(text: str | None) -> str:
    """Return ``text`` with credential-shaped substrings replaced by markers."""
    if not text:
        return ""
    for pattern, replacement in _RULES:
        text = pattern.sub(replacement, text)
    return text
