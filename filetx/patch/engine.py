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

"""Search/replace patch engine.

Applies literal search/replace edits to text. A search block must occur
exactly once in the content; otherwise the edit is rejected with a
NotFoundError (with the closest similar line, when there is one) or an
AmbiguousMatchError carrying the number of matches.

All functions here are pure: no I/O and no state.
"""

import re
from typing import Iterable, Optional, Set

from filetx.config import SIMILARITY_THRESHOLD
from filetx.errors import AmbiguousMatchError, NotFoundError, PatchError
from filetx.patch.protocol import Edit, PatchBatchResult, PatchFailure, SimilarMatch

# Lines at or below this length are never offered as similar matches
MIN_SIMILAR_LINE_LENGTH = 10
CONTEXT_LINES = 2

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_line_endings(text: str) -> str:
    """Convert CRLF line endings to LF."""
    return text.replace("\r\n", "\n")


def count_occurrences(content: str, search: str) -> int:
    """Count occurrences of ``search`` in ``content``, including overlaps.

    The scan advances one character past each match start, so ``"aa"``
    occurs twice in ``"aaa"``.
    """
    if not search:
        return 0

    count = 0
    pos = content.find(search)
    while pos != -1:
        count += 1
        pos = content.find(search, pos + 1)
    return count


def _trigrams(text: str) -> Set[str]:
    normalized = _WHITESPACE_RE.sub(" ", text.lower())
    return {normalized[i : i + 3] for i in range(len(normalized) - 2)}


def calculate_similarity(a: str, b: str) -> float:
    """Jaccard similarity (0-1) of the character trigrams of two strings."""
    trigrams_a = _trigrams(a)
    trigrams_b = _trigrams(b)

    if not trigrams_a or not trigrams_b:
        return 0.0

    intersection = len(trigrams_a & trigrams_b)
    union = len(trigrams_a) + len(trigrams_b) - intersection
    return intersection / union


def find_similar(
    content: str,
    search: str,
    threshold: float = SIMILARITY_THRESHOLD,
) -> Optional[SimilarMatch]:
    """Find the line most similar to the first line of a search block.

    Args:
        content: Content that was searched
        search: Search block that did not match
        threshold: Minimum similarity for a line to qualify

    Returns:
        SimilarMatch with the best line and its context, or None
    """
    lines = content.split("\n")
    search_lines = search.split("\n")
    first_search_line = search_lines[0].strip()

    if len(first_search_line) <= MIN_SIMILAR_LINE_LENGTH:
        return None

    best_index = -1
    best_score = 0.0
    for i, raw_line in enumerate(lines):
        line = raw_line.strip()
        if len(line) <= MIN_SIMILAR_LINE_LENGTH:
            continue
        score = calculate_similarity(line, first_search_line)
        if score >= threshold and score > best_score:
            best_index, best_score = i, score

    if best_index < 0:
        return None

    start = max(0, best_index - CONTEXT_LINES)
    end = min(len(lines), best_index + len(search_lines) + CONTEXT_LINES)
    return SimilarMatch(
        line=best_index + 1,
        text="\n".join(lines[start:end]),
        similarity=best_score,
    )


def apply_patch(
    content: str,
    edit: Edit,
    similarity_threshold: float = SIMILARITY_THRESHOLD,
) -> str:
    """Apply a single search/replace edit.

    Line endings of the content, search block and replace block are
    normalized to LF; the search block is also trimmed.

    Args:
        content: Original content
        edit: Edit with search_block and replace_block
        similarity_threshold: Threshold for the not-found diagnostic

    Returns:
        Content with the single occurrence replaced

    Raises:
        NotFoundError: If the search block does not occur
        AmbiguousMatchError: If the search block occurs more than once
    """
    normalized_content = normalize_line_endings(content)
    search = normalize_line_endings(edit.search_block).strip()
    replace = normalize_line_endings(edit.replace_block)

    occurrences = count_occurrences(normalized_content, search)

    if occurrences == 0:
        similar = find_similar(normalized_content, search, similarity_threshold)
        if similar:
            raise NotFoundError(
                f"Search block not found exactly. Closest match at line {similar.line}:\n"
                f"Expected:\n{search[:100]}...\n"
                f"Found:\n{similar.text[:100]}...",
                suggestion=similar,
            )
        raise NotFoundError(
            f'Search block not found in file. First 50 chars of search:\n"{search[:50]}..."'
        )

    if occurrences > 1:
        raise AmbiguousMatchError(
            f"Search block found {occurrences} times (must be unique). "
            "Add more context lines to make the search block unique.",
            count=occurrences,
        )

    return normalized_content.replace(search, replace, 1)


def _failure(edit: Edit, error: PatchError) -> PatchFailure:
    return PatchFailure(
        file_path=edit.file_path,
        search_preview=edit.search_preview,
        error=error.message,
        category=error.category.value,
        occurrences=getattr(error, "count", 0 if isinstance(error, NotFoundError) else None),
        suggestion=getattr(error, "suggestion", None),
        recovery_hint=error.recovery_hint,
    )


def apply_patches(
    content: str,
    edits: Iterable[Edit],
    similarity_threshold: float = SIMILARITY_THRESHOLD,
) -> PatchBatchResult:
    """Apply edits in order against an accumulating buffer.

    A failing edit is recorded and skipped; later edits still apply to the
    latest successfully modified buffer, so one pass reports every problem.
    """
    modified = content
    result = PatchBatchResult(final_content=content)

    for edit in edits:
        try:
            modified = apply_patch(modified, edit, similarity_threshold)
            result.applied += 1
        except PatchError as e:
            result.failed += 1
            result.errors.append(_failure(edit, e))

    result.final_content = modified
    return result
