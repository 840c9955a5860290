"""Review prompt construction.

Three shapes:
- light: 2-3 short, line-numbered suggestions
- full, with a diff: commentary scoped to the changed lines
- full, without a diff: a whole-file review (new files)

Whether the change is committed only affects wording. The diff is never
truncated; in the full/diff shape the file content is context only and is
capped at CONTEXT_EXCERPT_CHARS.
"""

from __future__ import annotations

CONTEXT_EXCERPT_CHARS = 2000


def _state_word(committed: bool) -> str:
    return "committed" if committed else "uncommitted"


def _fenced(body: str, lang: str = "") -> str:
    return f"```{lang}\n{body}\n```"


def _excerpt(content: str, limit: int = CONTEXT_EXCERPT_CHARS) -> str:
    if len(content) <= limit:
        return content
    return content[:limit] + "\n... (truncated, context only)"


def build_light_prompt(path: str, content: str, diff: str, *, committed: bool) -> str:
    state = _state_word(committed)
    parts = [
        "You are a concise code reviewer.",
        f"Give 2-3 short, actionable suggestions for the {state} changes in {path}.",
        "Start every suggestion with the line number it refers to, e.g. `L42: ...`.",
        "No introduction, no summary, no praise.",
        "",
    ]
    if diff.strip():
        parts += [
            "Only comment on lines that were added or modified (lines starting with `+`).",
            "Use the new-file line numbers from the diff hunk headers (`@@ -a,b +c,d @@`).",
            "",
            f"Diff of the {state} changes:",
            _fenced(diff, "diff"),
        ]
    else:
        parts += [
            "Line numbers start at 1 with the first line of the file.",
            "",
            f"File: {path}",
            _fenced(content),
        ]
    return "\n".join(parts)


def build_diff_prompt(path: str, content: str, diff: str, *, committed: bool) -> str:
    state = _state_word(committed)
    parts = [
        "You are an expert code reviewer.",
        f"Review ONLY the {state} changes to {path} shown in the diff below.",
        "",
        "Rules:",
        "- Comment only on added or modified lines (lines starting with `+` in the diff).",
        "- Anchor every comment to a line number, using the new-file numbers from the",
        "  diff hunk headers (`@@ -a,b +c,d @@`), e.g. `Line 42: ...`.",
        "- Do not review unchanged code; it is included for context only.",
        "- Be specific and technical; say so briefly if a change is fine.",
        "",
        f"Diff of the {state} changes:",
        _fenced(diff, "diff"),
        "",
        "Current file content (context only, do not review it):",
        _fenced(_excerpt(content)),
        "",
        "Structure your review as:",
        "1. **Change Analysis**: What the changes do and why they were likely made",
        "2. **Correctness**: Whether the changed lines do what they intend",
        "3. **Issues**: Bugs, security concerns, or edge cases introduced by the changes",
        "4. **Improvements**: Concrete suggestions for the changed lines",
        "5. **Impact & Context**: How the changes affect the rest of the file or callers",
    ]
    return "\n".join(parts)


def build_new_file_prompt(path: str, content: str, *, committed: bool) -> str:
    heading = "a new file that was committed" if committed else f"a new {_state_word(committed)} file"
    parts = [
        "You are an expert code reviewer. Review the following code file and provide feedback.",
        "",
        f"This is {heading}; review the whole file.",
        "",
        f"File: {path}",
        "Full file content:",
        _fenced(content),
        "",
        "Please provide a code review with the following structure:",
        "1. **Summary**: Brief overview of the code",
        "2. **What's Done Well**: Positive aspects, good practices, strengths",
        "3. **Suggestions for Improvement**: Specific, actionable suggestions",
        "4. **Potential Issues**: Bugs, security concerns, or potential problems",
        "5. **Best Practices**: Recommendations on organization, performance, or maintainability",
        "",
        "Format your response with clear sections and bullet points.",
    ]
    return "\n".join(parts)


def build_prompt(
    path: str,
    content: str,
    diff: str,
    *,
    committed: bool = False,
    light: bool = False,
) -> str:
    if light:
        return build_light_prompt(path, content, diff, committed=committed)
    if diff.strip():
        return build_diff_prompt(path, content, diff, committed=committed)
    return build_new_file_prompt(path, content, committed=committed)
