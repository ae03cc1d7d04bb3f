# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
# SPDX-License-Identifier: Apache-2.0

"""Atomic multi-file transactions over search/replace edits."""

from filetx.transaction.locks import PathLockRegistry, get_lock_registry
from filetx.transaction.manager import (
    HistoryEntry,
    TransactionManager,
    execute_atomic,
    validate_edits,
)
from filetx.transaction.protocol import (
    TERMINAL_STATES,
    TRANSITIONS,
    CommitResult,
    FileDiff,
    FileError,
    FileValidation,
    RollbackResult,
    TransactionRecord,
    TransactionState,
    ValidationResult,
    can_transition,
)
from filetx.transaction.transaction import FileTransaction

__all__ = [
    "CommitResult",
    "FileDiff",
    "FileError",
    "FileTransaction",
    "FileValidation",
    "HistoryEntry",
    "PathLockRegistry",
    "RollbackResult",
    "TERMINAL_STATES",
    "TRANSITIONS",
    "TransactionManager",
    "TransactionRecord",
    "TransactionState",
    "ValidationResult",
    "can_transition",
    "execute_atomic",
    "get_lock_registry",
    "validate_edits",
]
