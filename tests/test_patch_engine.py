# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Tests for patch/engine.py module."""

import pytest
from pydantic import ValidationError

from filetx.errors import AmbiguousMatchError, NotFoundError
from filetx.patch import (
    Edit,
    apply_patch,
    apply_patches,
    calculate_similarity,
    count_occurrences,
    find_similar,
    normalize_line_endings,
)


def _edit(search: str, replace: str) -> Edit:
    return Edit(search_block=search, replace_block=replace)


class TestCountOccurrences:
    """Tests for count_occurrences."""

    def test_overlapping_matches_counted(self):
        """Test that overlapping matches are counted individually."""
        assert count_occurrences("aaa", "aa") == 2
        assert count_occurrences("aaaaa", "aaaa") == 2

    def test_distinct_matches(self):
        assert count_occurrences("abc abc abc", "abc") == 3

    def test_no_match(self):
        assert count_occurrences("hello", "xyz") == 0

    def test_empty_search(self):
        """Test that an empty search never matches."""
        assert count_occurrences("hello", "") == 0


class TestSimilarity:
    """Tests for calculate_similarity and find_similar."""

    def test_identical_strings(self):
        assert calculate_similarity("hello world", "hello world") == 1.0

    def test_case_and_whitespace_insensitive(self):
        assert calculate_similarity("Hello   World", "hello world") == 1.0

    def test_too_short_for_trigrams(self):
        assert calculate_similarity("ab", "abc") == 0.0

    def test_unrelated_strings(self):
        assert calculate_similarity("abcdefgh", "stuvwxyz") == 0.0

    def test_find_similar_reports_line_and_context(self):
        """Test that the closest line is reported with surrounding lines."""
        content = "alpha\n    result = compute_total(items, tax)\nomega\n"

        match = find_similar(content, "result = compute_total(items, taxes)")

        assert match is not None
        assert match.line == 2
        assert "alpha" in match.text
        assert "compute_total(items, tax)" in match.text
        assert match.similarity >= 0.6

    def test_find_similar_picks_best_candidate(self):
        """Test that the highest scoring line wins over the first qualifying one."""
        content = "total_price = calculate(order)\ntotal_price = calculate(orders)\n"

        match = find_similar(content, "total_price = calculate(orders, tax)")

        assert match is not None
        assert match.line == 2

    def test_find_similar_ignores_short_search(self):
        assert find_similar("short line here", "short") is None

    def test_find_similar_below_threshold(self):
        content = "completely different content here\n"
        assert find_similar(content, "nothing alike at all, truly") is None


class TestApplyPatch:
    """Tests for apply_patch."""

    def test_unique_match_replaced(self):
        content = "def foo():\n    return 1\n"

        result = apply_patch(content, _edit("return 1", "return 2"))

        assert result == "def foo():\n    return 2\n"

    def test_result_length(self):
        """Test length arithmetic for a unique match."""
        content = "prefix MARKER suffix"
        search, replace = "MARKER", "replacement text"

        result = apply_patch(content, _edit(search, replace))

        assert len(result) == len(content) - len(search) + len(replace)

    def test_crlf_normalized(self):
        """Test that CRLF in content and search block is normalized."""
        content = "line one\r\nline two\r\nline three\r\n"

        result = apply_patch(content, _edit("line one\r\nline two", "first\nsecond"))

        assert result == "first\nsecond\nline three\n"

    def test_search_block_trimmed(self):
        result = apply_patch("hello world", _edit("  \nhello\n  ", "goodbye"))
        assert result == "goodbye world"

    def test_replace_block_not_trimmed(self):
        result = apply_patch("a-MARK-b", _edit("MARK", "  x  "))
        assert result == "a-  x  -b"

    def test_empty_replace_deletes(self):
        """Test that surrounding whitespace of the search block is not deleted."""
        result = apply_patch("keep remove-me keep", _edit(" remove-me", ""))
        assert result == "keep  keep"

    def test_empty_replace_deletes_line(self):
        result = apply_patch("first\nremove this line\nlast\n", _edit("remove this line\n", ""))
        assert result == "first\n\nlast\n"

    def test_not_found(self):
        with pytest.raises(NotFoundError, match="Search block not found in file") as exc_info:
            apply_patch("hello world", _edit("goodbye moon", "x"))

        assert exc_info.value.suggestion is None
        assert exc_info.value.category.value == "not_found"

    def test_not_found_with_suggestion(self):
        content = "alpha\n    result = compute_total(items, tax)\nomega\n"

        with pytest.raises(NotFoundError, match="Closest match at line 2") as exc_info:
            apply_patch(content, _edit("result = compute_total(items, taxes)", "x"))

        assert exc_info.value.suggestion.line == 2
        assert "line 2" in exc_info.value.recovery_hint

    def test_ambiguous_match(self):
        with pytest.raises(AmbiguousMatchError, match="found 2 times") as exc_info:
            apply_patch("cat cat", _edit("cat", "dog"))

        assert exc_info.value.count == 2

    def test_ambiguous_overlapping_match(self):
        with pytest.raises(AmbiguousMatchError) as exc_info:
            apply_patch("aaaaa", _edit("aaaa", "b"))

        assert exc_info.value.count == 2

    def test_round_trip(self):
        """Test that S->R followed by R->S restores the original."""
        original = "config = load()\nvalue = config.get('key')\n"

        forward = apply_patch(original, _edit("config.get('key')", "config['key']"))
        back = apply_patch(forward, _edit("config['key']", "config.get('key')"))

        assert back == original


class TestApplyPatches:
    """Tests for apply_patches."""

    def test_all_applied(self):
        result = apply_patches(
            "alpha beta gamma",
            [_edit("alpha", "ALPHA"), _edit("gamma", "GAMMA")],
        )

        assert result.ok
        assert result.applied == 2
        assert result.failed == 0
        assert result.final_content == "ALPHA beta GAMMA"

    def test_edits_apply_to_accumulated_buffer(self):
        """Test that later edits see the output of earlier ones."""
        result = apply_patches(
            "step one",
            [_edit("step one", "step two"), _edit("step two", "step three")],
        )

        assert result.final_content == "step three"

    def test_failure_does_not_abort_batch(self):
        """Test that every failing edit is reported in one pass."""
        result = apply_patches(
            "alpha beta gamma beta",
            [
                _edit("alpha", "ALPHA"),
                _edit("missing", "x"),
                _edit("beta", "BETA"),
                _edit("gamma", "GAMMA"),
            ],
        )

        assert not result.ok
        assert result.applied == 2
        assert result.failed == 2
        assert result.final_content == "ALPHA beta GAMMA beta"

        not_found, ambiguous = result.errors
        assert not_found.category == "not_found"
        assert not_found.occurrences == 0
        assert ambiguous.category == "ambiguous_match"
        assert ambiguous.occurrences == 2
        assert ambiguous.recovery_hint

    def test_failure_wire_shape(self):
        result = apply_patches("text", [_edit("missing block", "x")])

        data = result.model_dump(by_alias=True)

        assert data["finalContent"] == "text"
        assert data["errors"][0]["searchPreview"].startswith("missing block")


class TestEditModel:
    """Tests for the Edit model."""

    def test_accepts_wire_names(self):
        edit = Edit.model_validate(
            {"filePath": "src/app.py", "searchBlock": "old()", "replaceBlock": ""}
        )

        assert edit.file_path == "src/app.py"
        assert edit.search_block == "old()"
        assert edit.replace_block == ""

    def test_dumps_wire_names(self):
        data = _edit("old()", "new()").model_dump(by_alias=True)
        assert data["searchBlock"] == "old()"
        assert data["replaceBlock"] == "new()"

    def test_frozen(self):
        edit = _edit("old()", "new()")
        with pytest.raises(ValidationError):
            edit.search_block = "other"

    def test_normalize_line_endings(self):
        assert normalize_line_endings("a\r\nb\nc\r\n") == "a\nb\nc\n"
