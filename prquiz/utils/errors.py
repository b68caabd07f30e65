"""Mapping of failures onto the user-facing guidance categories.

Upstream APIs return free-text messages, so past the typed checks this is
a keyword heuristic. Keep every rule in :func:`classify_error`.
"""
from enum import Enum

from prquiz.github.api_client import InvalidPRReferenceError, SourceAPIError
from prquiz.llm.providers.base import LocalModelNotFoundError, ProviderError


class ErrorCategory(str, Enum):
    NETWORK = "network"
    CREDENTIALS = "credentials"
    RATE_LIMIT = "rate_limit"
    NOT_FOUND = "not_found"
    GENERIC = "generic"


GUIDANCE = {
    ErrorCategory.NETWORK: [
        "Check your internet connection.",
        "Check firewall and proxy settings.",
        "Wait a moment and try again.",
    ],
    ErrorCategory.CREDENTIALS: [
        "Check that the AI provider API key is set correctly.",
        "Re-enter the API key in the settings.",
        "Make sure the key is valid and has enough credit.",
    ],
    ErrorCategory.RATE_LIMIT: [
        "The API usage limit has been reached.",
        "Wait a while before trying again.",
        "A GitHub token raises the GitHub rate limit.",
    ],
    ErrorCategory.NOT_FOUND: [
        "Check that the pull request URL is correct.",
        "Private repositories need a GitHub token.",
        "Make sure the pull request exists and is accessible.",
    ],
    ErrorCategory.GENERIC: [
        "An unexpected error occurred.",
        "Wait a moment and try again.",
    ],
}

_KEYWORDS = [
    (ErrorCategory.RATE_LIMIT, ("rate limit", "too many requests", "429", "quota")),
    (ErrorCategory.CREDENTIALS, ("api key", "api_key", "unauthorized", "401", "credential", "authentication")),
    (ErrorCategory.NOT_FOUND, ("not found", "404", "invalid pr url")),
    (ErrorCategory.NETWORK, ("network", "connection", "timeout", "timed out")),
]


def classify_error(exc: BaseException) -> ErrorCategory:
    if isinstance(exc, InvalidPRReferenceError):
        return ErrorCategory.NOT_FOUND
    if isinstance(exc, LocalModelNotFoundError):
        return ErrorCategory.NOT_FOUND

    if isinstance(exc, SourceAPIError):
        if exc.is_rate_limited:
            return ErrorCategory.RATE_LIMIT
        if exc.is_not_found:
            return ErrorCategory.NOT_FOUND
        if exc.is_unauthorized or exc.status_code == 403:
            return ErrorCategory.CREDENTIALS
        if exc.status_code is None:
            return ErrorCategory.NETWORK
        if exc.is_server_error:
            return ErrorCategory.GENERIC

    if isinstance(exc, (SourceAPIError, ProviderError)):
        message = exc.message.lower()
    else:
        message = str(exc).lower()

    for category, keywords in _KEYWORDS:
        if any(keyword in message for keyword in keywords):
            return category
    return ErrorCategory.GENERIC


def guidance_for(category: ErrorCategory) -> list[str]:
    return list(GUIDANCE[category])
