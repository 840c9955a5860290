from __future__ import annotations

from ollama_watcher.models import ChangeClass, ReviewRequest, Verbosity
from ollama_watcher.prompts import CONTEXT_EXCERPT_CHARS, build_prompt

DIFF = """diff --git a/src/a.js b/src/a.js
--- a/src/a.js
+++ b/src/a.js
@@ -1,3 +1,4 @@
 function hello() {
+  console.log('hi');
   return 'hello';
 }
"""


class TestFullPrompt:
    def test_diff_prompt_scopes_to_changed_lines(self) -> None:
        prompt = build_prompt("src/a.js", "function hello() {}\n", DIFF)

        assert "```diff\n" + DIFF in prompt
        assert "Comment only on added or modified lines" in prompt
        assert "context only" in prompt
        for heading in ("Change Analysis", "Correctness", "Issues", "Improvements", "Impact & Context"):
            assert heading in prompt
        assert "Summary" not in prompt

    def test_context_excerpt_is_capped_but_diff_is_not(self) -> None:
        content = "x" * (CONTEXT_EXCERPT_CHARS + 500)
        long_diff = DIFF + ("+" + "y" * 100 + "\n") * 100

        prompt = build_prompt("big.js", content, long_diff)

        assert "x" * CONTEXT_EXCERPT_CHARS in prompt
        assert "x" * (CONTEXT_EXCERPT_CHARS + 1) not in prompt
        assert "truncated" in prompt
        assert long_diff in prompt

    def test_new_file_prompt_has_full_structure_and_content(self) -> None:
        content = "y" * (CONTEXT_EXCERPT_CHARS * 2)

        prompt = build_prompt("new.js", content, "")

        assert content in prompt
        assert "new uncommitted file" in prompt
        for heading in ("Summary", "What's Done Well", "Suggestions for Improvement", "Potential Issues", "Best Practices"):
            assert heading in prompt

    def test_whitespace_only_diff_counts_as_no_diff(self) -> None:
        prompt = build_prompt("new.js", "let a = 1;\n", "  \n")
        assert "Best Practices" in prompt

    def test_committed_flag_only_changes_wording(self) -> None:
        uncommitted = build_prompt("src/a.js", "code", DIFF, committed=False)
        committed = build_prompt("src/a.js", "code", DIFF, committed=True)

        assert "uncommitted changes" in uncommitted
        assert "committed changes" in committed
        assert "uncommitted" not in committed
        assert committed.replace("committed", "uncommitted") == uncommitted


class TestLightPrompt:
    def test_with_diff(self) -> None:
        prompt = build_prompt("src/a.js", "code", DIFF, light=True)

        assert "2-3" in prompt
        assert DIFF in prompt
        assert "added or modified" in prompt
        assert "hunk headers" in prompt
        assert "Change Analysis" not in prompt

    def test_without_diff_includes_content(self) -> None:
        prompt = build_prompt("tool", "#!/bin/sh\necho hi\n", "", light=True)

        assert "#!/bin/sh\necho hi\n" in prompt
        assert "Line numbers start at 1" in prompt
        assert "Summary" not in prompt


def test_review_request_prompt_uses_builder() -> None:
    request = ReviewRequest(
        path="new.js",
        content="let a = 1;\n",
        diff="",
        change_class=ChangeClass.COMMITTED,
        verbosity=Verbosity.FULL,
    )

    assert request.is_new_file is True
    assert request.prompt == build_prompt("new.js", "let a = 1;\n", "", committed=True, light=False)
    assert "new file that was committed" in request.prompt
