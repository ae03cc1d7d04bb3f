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

"""Transaction protocol types and the lifecycle state machine."""

from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pydantic import Field

from filetx.patch.protocol import Edit, PatchFailure, WireModel


class TransactionState(str, Enum):
    """Lifecycle state of a file transaction."""

    PENDING = "pending"  # Created, edits being staged
    VALIDATING = "validating"
    VALIDATED = "validated"  # Every staged edit applies cleanly
    COMMITTING = "committing"
    COMMITTED = "committed"
    ROLLING_BACK = "rolling_back"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"
    ABORTED = "aborted"


_PENDING = TransactionState.PENDING
_VALIDATING = TransactionState.VALIDATING
_VALIDATED = TransactionState.VALIDATED
_COMMITTING = TransactionState.COMMITTING
_COMMITTED = TransactionState.COMMITTED
_ROLLING_BACK = TransactionState.ROLLING_BACK
_ROLLED_BACK = TransactionState.ROLLED_BACK
_FAILED = TransactionState.FAILED
_ABORTED = TransactionState.ABORTED

# Every state maps to the states it may move to; anything else is rejected
TRANSITIONS: Dict[TransactionState, FrozenSet[TransactionState]] = {
    _PENDING: frozenset({_VALIDATING, _COMMITTING, _ABORTED}),
    _VALIDATING: frozenset({_VALIDATED, _PENDING, _ABORTED}),
    _VALIDATED: frozenset({_VALIDATING, _COMMITTING, _ABORTED}),
    _COMMITTING: frozenset({_COMMITTED, _ROLLING_BACK, _FAILED, _ABORTED}),
    _COMMITTED: frozenset({_ROLLING_BACK}),
    _ROLLING_BACK: frozenset({_ROLLED_BACK, _FAILED, _ABORTED}),
    _ROLLED_BACK: frozenset({_ABORTED}),
    _FAILED: frozenset({_ROLLING_BACK, _ABORTED}),
    _ABORTED: frozenset({_ABORTED}),
}

TERMINAL_STATES: FrozenSet[TransactionState] = frozenset(
    {_COMMITTED, _ROLLED_BACK, _FAILED, _ABORTED}
)


def can_transition(current: TransactionState, target: TransactionState) -> bool:
    """Check whether the state machine allows ``current`` -> ``target``."""
    return target in TRANSITIONS[current]


class FileError(WireModel):
    """An error attributed to one file."""

    file_path: str
    error: str
    category: Optional[str] = None


class FileValidation(WireModel):
    """Validation outcome for one staged file."""

    file_path: str
    exists: bool = False
    readable: bool = False
    edits_valid: bool = False
    preview_available: bool = False
    errors: List[str] = Field(default_factory=list)
    failures: List[PatchFailure] = Field(default_factory=list)


class ValidationResult(WireModel):
    """Dry-run result over every staged file."""

    valid: bool = True
    files: List[FileValidation] = Field(default_factory=list)
    errors: List[FileError] = Field(default_factory=list)


class FileDiff(WireModel):
    """Original and modified content of one validated file."""

    file_path: str
    original: str
    modified: str
    original_lines: int
    modified_lines: int
    changed: bool
    unified_diff: str = ""


class RollbackResult(WireModel):
    """Best-effort restoration outcome."""

    success: bool = True
    files_rolled_back: int = 0
    errors: List[FileError] = Field(default_factory=list)
    restored_from: Dict[str, str] = Field(
        default_factory=dict, description="file path -> 'backup' or 'snapshot'"
    )
    backup_failures: List[FileError] = Field(
        default_factory=list, description="Backup copies that failed before the snapshot was used"
    )


class CommitResult(WireModel):
    """Outcome of writing a transaction to disk."""

    success: bool
    files_committed: int = 0
    edits_applied: int = 0
    backups_created: int = 0
    errors: List[FileError] = Field(default_factory=list)
    transaction_id: Optional[str] = None
    rollback_performed: bool = False
    error: Optional[str] = None
    validation: Optional[ValidationResult] = None
    rollback: Optional[RollbackResult] = None


class TransactionRecord(WireModel):
    """Serializable transaction state, including pre-image snapshots.

    Persisting a record before commit lets another process rebuild the
    transaction with ``FileTransaction.from_record`` and roll it back.
    """

    id: str
    state: TransactionState
    created_at: datetime
    base_dir: str
    backup_dir: str
    create_backups: bool = True
    validate_before_commit: bool = True
    staged_edits: Dict[str, List[Edit]] = Field(default_factory=dict)
    original_contents: Dict[str, str] = Field(default_factory=dict)
    backups: Dict[str, str] = Field(default_factory=dict)
    validation_errors: List[FileError] = Field(default_factory=list)
    commit_errors: List[FileError] = Field(default_factory=list)
    rollback_errors: List[FileError] = Field(default_factory=list)
