# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
# SPDX-License-Identifier: Apache-2.0

"""Literal search/replace patching with unique-match detection."""

from filetx.patch.engine import (
    apply_patch,
    apply_patches,
    calculate_similarity,
    count_occurrences,
    find_similar,
    normalize_line_endings,
)
from filetx.patch.protocol import (
    Edit,
    EditValidation,
    PatchBatchResult,
    PatchFailure,
    SimilarMatch,
)
from filetx.patch.validator import validate_edit

__all__ = [
    "Edit",
    "EditValidation",
    "PatchBatchResult",
    "PatchFailure",
    "SimilarMatch",
    "apply_patch",
    "apply_patches",
    "calculate_similarity",
    "count_occurrences",
    "find_similar",
    "normalize_line_endings",
    "validate_edit",
]
