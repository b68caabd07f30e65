import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from prquiz.github.diff_parser import detect_language
from prquiz.models.schemas import (
    CommitAuthor,
    CommitInfo,
    FileChange,
    PullRequestRecord,
    Repository,
    ReviewInfo,
)

logger = logging.getLogger(__name__)

API_BASE = "https://api.github.com"
COMMON_HEADERS = {
    "Accept": "application/vnd.github+json",
    "X-GitHub-Api-Version": "2022-11-28",
    "User-Agent": "pr-quiz-generator/0.1.0",
}

PR_URL_PATTERN = re.compile(
    r"^(?:https?://)?(?:www\.)?github\.com/(?P<owner>[^/\s]+)/(?P<repo>[^/\s]+)"
    r"/pull/(?P<number>\d+)(?:[/?#]\S*)?$",
    re.IGNORECASE,
)
EXPECTED_SHAPE = "https://github.com/owner/repo/pull/123"


class InvalidPRReferenceError(ValueError):
    pass


class SourceAPIError(Exception):
    """Failure talking to the code-hosting API.

    ``status_code`` is ``None`` when no response was received at all
    (connection failure, timeout).
    """

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details
        self.rate_limit_remaining: str | None = None

    @property
    def is_rate_limited(self) -> bool:
        if self.status_code == 429:
            return True
        if self.status_code == 403:
            return self.rate_limit_remaining == "0" or "rate limit" in self.message.lower()
        return False

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_unauthorized(self) -> bool:
        return self.status_code == 401

    @property
    def is_server_error(self) -> bool:
        return self.status_code is not None and self.status_code >= 500

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"GitHub API error ({self.status_code}): {self.message}"


@dataclass(frozen=True)
class PRReference:
    owner: str
    repo: str
    number: int


def parse_pr_url(pr_url: str) -> PRReference:
    match = PR_URL_PATTERN.match(pr_url.strip())
    if not match:
        raise InvalidPRReferenceError(
            f"Invalid PR URL: {pr_url!r}. Expected format: {EXPECTED_SHAPE}"
        )
    return PRReference(
        owner=match["owner"],
        repo=match["repo"],
        number=int(match["number"]),
    )


class PullRequestSource(Protocol):
    async def fetch(self, pr_url: str) -> PullRequestRecord: ...


class GitHubClient:
    """Reads pull requests from the GitHub REST API.

    Construct one explicitly and hand it to whoever needs it; pass
    ``transport`` to route requests somewhere other than the network.
    """

    def __init__(
        self,
        token: str | None = None,
        api_base: str = API_BASE,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.token = token
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def headers(self) -> dict[str, str]:
        if self.token:
            return {**COMMON_HEADERS, "Authorization": f"Bearer {self.token}"}
        return dict(COMMON_HEADERS)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_base,
            headers=self.headers(),
            timeout=self.timeout,
            transport=self.transport,
        )

    async def _get_json(self, client: httpx.AsyncClient, path: str, **params: Any) -> Any:
        try:
            resp = await client.get(path, params=params or None)
        except httpx.TimeoutException as exc:
            raise SourceAPIError(f"Timeout contacting GitHub: {exc}", details=str(exc)) from exc
        except httpx.RequestError as exc:
            raise SourceAPIError(f"Network error contacting GitHub: {exc}", details=str(exc)) from exc

        if resp.is_success:
            return resp.json()

        try:
            body = resp.json()
        except ValueError:
            body = resp.text
        message = body.get("message") if isinstance(body, dict) else None
        error = SourceAPIError(message or "GitHub API error", resp.status_code, body)
        error.rate_limit_remaining = resp.headers.get("x-ratelimit-remaining")
        logger.warning("GitHub GET %s failed with %s: %s", path, resp.status_code, error.message)
        raise error

    async def fetch(self, pr_url: str) -> PullRequestRecord:
        """Fetch a pull request and normalise it into one record.

        Metadata, files, commits and reviews are requested concurrently;
        the first failure aborts the whole fetch.
        """
        ref = parse_pr_url(pr_url)
        base = f"/repos/{ref.owner}/{ref.repo}/pulls/{ref.number}"

        async with self._client() as client:
            tasks = [
                asyncio.create_task(self._get_json(client, base)),
                asyncio.create_task(self._get_json(client, f"{base}/files", per_page=100)),
                asyncio.create_task(self._get_json(client, f"{base}/commits", per_page=100)),
                asyncio.create_task(self._get_json(client, f"{base}/reviews", per_page=100)),
            ]
            try:
                pr_data, files, commits, reviews = await asyncio.gather(*tasks)
            except BaseException:
                # Stop the sibling reads before the client closes under them
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise

        logger.info(
            "Fetched %s/%s#%d: %d files, %d commits, %d reviews",
            ref.owner, ref.repo, ref.number, len(files), len(commits), len(reviews),
        )
        return normalize_pull_request(ref, pr_data, files, commits, reviews)

    async def validate_connection(self) -> bool:
        try:
            async with self._client() as client:
                await self._get_json(client, "/user")
            return True
        except SourceAPIError as exc:
            logger.debug("GitHub connection check failed: %s", exc)
            return False

    async def get_rate_limit(self) -> dict:
        async with self._client() as client:
            return await self._get_json(client, "/rate_limit")


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------

def normalize_pull_request(
    ref: PRReference,
    pr_data: dict,
    files: list[dict],
    commits: list[dict],
    reviews: list[dict],
) -> PullRequestRecord:
    return PullRequestRecord(
        id=f"{ref.owner}/{ref.repo}#{ref.number}",
        number=ref.number,
        title=pr_data.get("title") or "",
        description=pr_data.get("body") or "",
        author=_login(pr_data.get("user")),
        repository=Repository(owner=ref.owner, name=ref.repo),
        files=tuple(_normalize_file(f) for f in files),
        commits=tuple(_normalize_commit(c) for c in commits),
        reviews=tuple(_normalize_review(r) for r in reviews),
        created_at=pr_data["created_at"],
        updated_at=pr_data["updated_at"],
    )


def _login(user: dict | None) -> str:
    # Deleted accounts come back as null
    return (user or {}).get("login") or "ghost"


def _normalize_file(file_obj: dict) -> FileChange:
    filename = file_obj.get("filename", "")
    status = file_obj.get("status", "modified")
    # "copied"/"changed"/"unchanged" have no counterpart in the record
    if status not in ("added", "modified", "deleted", "renamed"):
        status = "modified"
    return FileChange(
        filename=filename,
        status=status,
        additions=file_obj.get("additions", 0),
        deletions=file_obj.get("deletions", 0),
        patch=file_obj.get("patch"),
        language=detect_language(filename),
    )


def _normalize_commit(commit_obj: dict) -> CommitInfo:
    commit = commit_obj.get("commit") or {}
    author = commit.get("author") or {}
    return CommitInfo(
        sha=commit_obj.get("sha", ""),
        message=commit.get("message", ""),
        author=CommitAuthor(
            name=author.get("name") or "",
            email=author.get("email") or "",
            date=author.get("date"),
        ),
    )


def _normalize_review(review_obj: dict) -> ReviewInfo:
    return ReviewInfo(
        id=str(review_obj.get("id", "")),
        user=_login(review_obj.get("user")),
        state=review_obj.get("state", "COMMENTED"),
        body=review_obj.get("body") or "",
        submitted_at=review_obj.get("submitted_at"),
    )
