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

"""Patch protocol types.

Records exchanged with edit-proposing services use camelCase on the wire
(``filePath``, ``searchBlock``, ``replaceBlock``). Models accept either
spelling on input and emit camelCase with ``model_dump(by_alias=True)``.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base model with camelCase aliases for the wire format."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Edit(WireModel):
    """A literal search/replace edit against one file."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    file_path: str = Field(default="", description="Canonical path once staged")
    search_block: str = Field(description="Literal text that must match exactly once")
    replace_block: str = Field(description="Replacement text, empty to delete")
    staged_at: Optional[datetime] = Field(default=None, description="When the edit was staged")

    @property
    def search_preview(self) -> str:
        return self.search_block[:50] + "..."


class SimilarMatch(WireModel):
    """Closest line to a search block that did not match exactly."""

    line: int = Field(description="1-based line number of the candidate")
    text: str = Field(description="Candidate line with surrounding context")
    similarity: float


class PatchFailure(WireModel):
    """Diagnostics for one edit that could not be applied."""

    file_path: str = ""
    search_preview: str
    error: str
    category: str
    occurrences: Optional[int] = None
    suggestion: Optional[SimilarMatch] = None
    recovery_hint: Optional[str] = None


class PatchBatchResult(WireModel):
    """Outcome of applying several edits to one buffer.

    ``final_content`` of a batch with failures is diagnostic only and
    must not be persisted.
    """

    final_content: str
    applied: int = 0
    failed: int = 0
    errors: List[PatchFailure] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed == 0


class EditValidation(WireModel):
    """Structural validation result for an edit record."""

    valid: bool
    issues: List[str] = Field(default_factory=list)
