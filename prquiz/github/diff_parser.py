from prquiz.utils.security import sanitize

# Best-effort, extension-only classification
LANGUAGE_BY_EXTENSION = {
    "js": "javascript",
    "jsx": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    "py": "python",
    "java": "java",
    "cpp": "cpp",
    "c": "c",
    "cs": "csharp",
    "php": "php",
    "rb": "ruby",
    "go": "go",
    "rs": "rust",
    "swift": "swift",
    "kt": "kotlin",
    "scala": "scala",
    "html": "html",
    "css": "css",
    "scss": "scss",
    "sass": "sass",
    "md": "markdown",
    "json": "json",
    "xml": "xml",
    "yml": "yaml",
    "yaml": "yaml",
    "sh": "bash",
    "sql": "sql",
}

DEFAULT_LANGUAGE = "text"
MAX_PREVIEW_LINES = 20


def detect_language(filename: str) -> str:
    basename = filename.rsplit("/", 1)[-1]
    if "." not in basename:
        return DEFAULT_LANGUAGE
    extension = basename.rsplit(".", 1)[-1].lower()
    return LANGUAGE_BY_EXTENSION.get(extension, DEFAULT_LANGUAGE)


def patch_preview(patch: str | None, max_lines: int = MAX_PREVIEW_LINES) -> str:
    """First ``max_lines`` lines of a unified diff, with secrets redacted.

    Redaction runs on the whole patch so a private key cut by the line
    limit still loses its body.
    """
    if not patch:
        return ""
    lines = sanitize(patch).split("\n")[:max_lines]
    return "\n".join(lines)
