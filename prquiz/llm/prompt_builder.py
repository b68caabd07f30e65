from prquiz.github.diff_parser import patch_preview
from prquiz.llm.prompts import FILE_SECTION, QUIZ_PROMPT
from prquiz.models.schemas import FileChange, QuizGenerationContext
from prquiz.utils.security import sanitize

MAX_DETAILED_FILES = 5


def build_prompt(context: QuizGenerationContext) -> str:
    """Render the provider-agnostic quiz request for ``context``.

    Only the first files (in PR order) get a detailed, redacted patch
    preview; every file still appears in the change analysis list.
    """
    pr = context.pull_request

    changes = "\n".join(
        f"- {c.filename} ({c.language}): {c.type}, {c.lines_changed} lines changed, "
        f"complexity {c.complexity}"
        for c in context.changes
    ) or "(no file changes)"

    files = "\n\n".join(
        _render_file(f) for f in pr.files[:MAX_DETAILED_FILES]
    ) or "(no files)"

    focus_areas = ", ".join(
        f"{area.type} (weight {area.weight})" for area in context.focus_areas
    )

    return QUIZ_PROMPT.format(
        title=pr.title,
        author=pr.author,
        description=sanitize(pr.description) or "(none)",
        file_count=len(pr.files),
        commit_count=len(pr.commits),
        complexity=round(context.complexity, 1),
        languages=", ".join(context.languages) or "(none)",
        patterns=", ".join(context.patterns) or "(none)",
        changes=changes,
        files=files,
        question_count=context.question_count,
        difficulty=context.difficulty,
        focus_areas=focus_areas or "(none)",
    )


def _render_file(file: FileChange) -> str:
    return FILE_SECTION.format(
        filename=file.filename,
        language=file.language or "unknown",
        status=file.status,
        additions=file.additions,
        deletions=file.deletions,
        preview=patch_preview(file.patch),
    )
