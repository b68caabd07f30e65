"""Heuristic analysis of a pull request ahead of quiz generation.

The weights and thresholds here are product heuristics, not measurements.
"""
from prquiz.models.schemas import (
    ChangeAnalysis,
    CodeChange,
    FileChange,
    FocusArea,
    PullRequestRecord,
)

FILENAME_PATTERNS = {
    "test": "testing",
    "api": "api",
    "component": "component",
    "service": "service",
}
ASYNC_KEYWORDS = ("async", "await")
HOOK_KEYWORDS = ("useState", "useEffect")

SECURITY_KEYWORDS = ("password", "token", "auth")
PERFORMANCE_KEYWORDS = ("performance", "optimize", "cache")


def analyze(pr: PullRequestRecord) -> ChangeAnalysis:
    return ChangeAnalysis(
        changes=[describe_change(f) for f in pr.files],
        complexity=pr_complexity(pr),
        languages=detect_languages(pr.files),
        patterns=identify_patterns(pr.files),
        focus_areas=suggest_focus_areas(pr.files),
    )


def describe_change(file: FileChange) -> CodeChange:
    lines_changed = file.lines_changed
    return CodeChange(
        type=file.status,
        filename=file.filename,
        language=file.language or "unknown",
        lines_changed=lines_changed,
        complexity=min(10, lines_changed // 10),
        summary=f"{file.status} file with {file.additions} additions and {file.deletions} deletions",
    )


def pr_complexity(pr: PullRequestRecord) -> float:
    """0-100 score: 10 per file, 1 per 10 changed lines, 5 per commit."""
    file_count = len(pr.files)
    total_lines = sum(f.lines_changed for f in pr.files)
    commit_count = len(pr.commits)
    return min(100, file_count * 10 + total_lines / 10 + commit_count * 5)


def detect_languages(files: tuple[FileChange, ...] | list[FileChange]) -> list[str]:
    return list(dict.fromkeys(f.language for f in files if f.language))


def identify_patterns(files: tuple[FileChange, ...] | list[FileChange]) -> list[str]:
    patterns: dict[str, None] = {}
    for f in files:
        for needle, pattern in FILENAME_PATTERNS.items():
            if needle in f.filename:
                patterns[pattern] = None
        patch = f.patch or ""
        if any(keyword in patch for keyword in ASYNC_KEYWORDS):
            patterns["async"] = None
        if any(keyword in patch for keyword in HOOK_KEYWORDS):
            patterns["react-hooks"] = None
    return list(patterns)


def suggest_focus_areas(files: tuple[FileChange, ...] | list[FileChange]) -> list[FocusArea]:
    # Relative emphasis hints; they do not sum to 1.
    areas = [
        FocusArea(type="logic", weight=0.3),
        FocusArea(type="syntax", weight=0.2),
        FocusArea(type="best-practices", weight=0.3),
    ]
    patches = [f.patch or "" for f in files]
    if any(keyword in patch for patch in patches for keyword in SECURITY_KEYWORDS):
        areas.append(FocusArea(type="security", weight=0.2))
    if any(keyword in patch for patch in patches for keyword in PERFORMANCE_KEYWORDS):
        areas.append(FocusArea(type="performance", weight=0.2))
    return areas
