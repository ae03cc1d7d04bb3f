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

"""Atomic multi-file patching.

Applies literal search/replace edits to one or more files with
all-or-nothing semantics, providing:
- Unique-match detection with nearest-line diagnostics
- Staged edits validated as a dry run before anything is written
- Backups taken before the first write
- Rollback of already-written files when a later write fails

Package Structure:
    errors.py                  - Error taxonomy
    config.py                  - FILETX_* settings
    patch/engine.py            - apply_patch / apply_patches
    patch/validator.py         - Structural edit validation
    transaction/transaction.py - FileTransaction
    transaction/manager.py     - TransactionManager and one-shot helpers
    transaction/preview.py     - Rich rendering of diffs and status

Usage:
    from filetx import TransactionManager

    manager = TransactionManager(base_dir=".")
    result = manager.execute([
        {"filePath": "foo.txt", "searchBlock": "hello", "replaceBlock": "goodbye"},
    ])
"""

from filetx.config import FileTxSettings, get_settings
from filetx.errors import (
    AmbiguousMatchError,
    BackupError,
    ErrorCategory,
    FileAccessError,
    FileTxError,
    InvalidStateTransition,
    NotFoundError,
    PatchError,
    RollbackError,
    StructuralError,
    WriteError,
)
from filetx.patch import (
    Edit,
    EditValidation,
    PatchBatchResult,
    PatchFailure,
    SimilarMatch,
    apply_patch,
    apply_patches,
    count_occurrences,
    find_similar,
    validate_edit,
)
from filetx.transaction import (
    CommitResult,
    FileTransaction,
    RollbackResult,
    TransactionManager,
    TransactionState,
    ValidationResult,
    execute_atomic,
    validate_edits,
)

__all__ = [
    # Errors
    "AmbiguousMatchError",
    "BackupError",
    "ErrorCategory",
    "FileAccessError",
    "FileTxError",
    "InvalidStateTransition",
    "NotFoundError",
    "PatchError",
    "RollbackError",
    "StructuralError",
    "WriteError",
    # Config
    "FileTxSettings",
    "get_settings",
    # Patching
    "Edit",
    "EditValidation",
    "PatchBatchResult",
    "PatchFailure",
    "SimilarMatch",
    "apply_patch",
    "apply_patches",
    "count_occurrences",
    "find_similar",
    "validate_edit",
    # Transactions
    "CommitResult",
    "FileTransaction",
    "RollbackResult",
    "TransactionManager",
    "TransactionState",
    "ValidationResult",
    "execute_atomic",
    "validate_edits",
]
