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

"""Structural validation of edit records, independent of any file."""

from typing import Any, Mapping

from filetx.config import MIN_SEARCH_LENGTH
from filetx.patch.protocol import EditValidation

_MISSING = object()


def _field(edit: Any, name: str, alias: str) -> Any:
    if isinstance(edit, Mapping):
        if name in edit:
            return edit[name]
        return edit.get(alias, _MISSING)
    return getattr(edit, name, _MISSING)


def validate_edit(edit: Any, min_search_length: int = MIN_SEARCH_LENGTH) -> EditValidation:
    """Check an edit record and report every violated rule.

    Accepts an Edit model or a mapping in snake_case or camelCase.

    Args:
        edit: Edit record to check
        min_search_length: Minimum length of the trimmed search block

    Returns:
        EditValidation listing all issues found
    """
    if edit is None:
        return EditValidation(valid=False, issues=["Edit object is null or undefined"])

    issues = []

    search_block = _field(edit, "search_block", "searchBlock")
    if not isinstance(search_block, str) or not search_block:
        issues.append("searchBlock is required and must be a string")
    elif len(search_block.strip()) < min_search_length:
        issues.append(
            f"searchBlock is too short (must be at least {min_search_length} characters)"
        )

    replace_block = _field(edit, "replace_block", "replaceBlock")
    if replace_block is _MISSING or replace_block is None:
        issues.append("replaceBlock is required (can be empty string to delete)")
    elif not isinstance(replace_block, str):
        issues.append("replaceBlock must be a string")

    file_path = _field(edit, "file_path", "filePath")
    if not isinstance(file_path, str) or not file_path:
        issues.append("filePath is required and must be a string")

    return EditValidation(valid=not issues, issues=issues)
