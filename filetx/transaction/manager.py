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

"""Transaction manager for orchestrating file transactions.

Keeps the set of live transactions, a bounded history of retired ones,
and a one-shot stage/validate/commit path for callers that do not need
to inspect a transaction between steps.
"""

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Deque, Dict, Iterable, List, Optional, Union

from filetx.config import FileTxSettings, get_settings
from filetx.errors import StructuralError
from filetx.transaction.locks import PathLockRegistry
from filetx.transaction.protocol import (
    CommitResult,
    FileError,
    TransactionState,
    ValidationResult,
)
from filetx.transaction.transaction import EditInput, FileTransaction, PathLike, pick_field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryEntry:
    """Metadata of a retired transaction. Never holds file content."""

    id: str
    final_state: TransactionState
    created_at: datetime
    removed_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "final_state": self.final_state.value,
            "created_at": self.created_at.isoformat(),
            "removed_at": self.removed_at.isoformat(),
        }


class TransactionManager:
    """Registry of file transactions with bounded history.

    Usage:
        manager = TransactionManager(base_dir="/path/to/project")

        result = manager.execute([
            {"filePath": "a.py", "searchBlock": "foo()", "replaceBlock": "bar()"},
            {"filePath": "b.py", "searchBlock": "foo()", "replaceBlock": "bar()"},
        ])

        # Or drive a transaction step by step
        tx = manager.create(create_backups=False)
        tx.stage("a.py", {"searchBlock": "foo()", "replaceBlock": "bar()"})
        tx.commit()
        manager.remove(tx.id)
    """

    def __init__(
        self,
        base_dir: PathLike,
        *,
        max_history: Optional[int] = None,
        settings: Optional[FileTxSettings] = None,
        lock_registry: Optional[PathLockRegistry] = None,
        **defaults: Any,
    ):
        """Initialize the transaction manager.

        Args:
            base_dir: Base directory shared by created transactions
            max_history: Retired transactions kept (default from settings)
            settings: Settings override
            lock_registry: Lock registry shared by created transactions
            **defaults: Default FileTransaction options (create_backups, ...)
        """
        if base_dir is None or not str(base_dir):
            raise ValueError("base_dir is required")

        self.settings = settings or get_settings()
        self.base_dir = Path(base_dir).resolve()
        self.max_history = self.settings.max_history if max_history is None else max_history
        if self.max_history <= 0:
            raise ValueError("max_history must be positive")

        self.defaults = defaults
        self.transactions: Dict[str, FileTransaction] = {}
        self.history: Deque[HistoryEntry] = deque(maxlen=self.max_history)
        self._lock_registry = lock_registry

        logger.info(f"TransactionManager initialized for {self.base_dir}")

    # ========================================================================
    # Registry
    # ========================================================================

    def create(self, **options: Any) -> FileTransaction:
        """Create and register a transaction.

        Args:
            **options: FileTransaction options overriding the manager defaults

        Returns:
            New PENDING transaction
        """
        merged = {
            "settings": self.settings,
            "lock_registry": self._lock_registry,
            **self.defaults,
            **options,
        }
        base_dir = merged.pop("base_dir", self.base_dir)

        tx = FileTransaction(base_dir, **merged)
        self.transactions[tx.id] = tx

        logger.info(f"Transaction {tx.id} created")
        return tx

    def get(self, transaction_id: str) -> Optional[FileTransaction]:
        """Get a live transaction by id."""
        return self.transactions.get(transaction_id)

    def list(
        self, state: Optional[Union[TransactionState, str]] = None
    ) -> List[FileTransaction]:
        """List live transactions, optionally only those in ``state``."""
        transactions = list(self.transactions.values())
        if state is not None:
            wanted = TransactionState(state)
            transactions = [tx for tx in transactions if tx.state is wanted]
        return transactions

    def remove(self, transaction_id: str) -> Optional[HistoryEntry]:
        """Retire a transaction, archiving its metadata into history.

        Returns:
            The history entry, or None if the id is unknown
        """
        tx = self.transactions.pop(transaction_id, None)
        if tx is None:
            return None

        entry = HistoryEntry(
            id=tx.id,
            final_state=tx.state,
            created_at=tx.created_at,
            removed_at=datetime.now(timezone.utc),
        )
        # deque(maxlen) evicts the oldest entry
        self.history.append(entry)

        logger.info(f"Transaction {tx.id} retired ({tx.state.value})")
        return entry

    # ========================================================================
    # One-shot execution
    # ========================================================================

    def execute(
        self,
        edits: Iterable[EditInput],
        *,
        cleanup_backups: bool = False,
        **options: Any,
    ) -> CommitResult:
        """Stage, validate and commit a batch of edits.

        Nothing is written unless every edit is well-formed and applies
        cleanly. A transaction that fails staging or validation is aborted
        and retired; a committed one stays registered.

        Args:
            edits: Records with filePath, searchBlock and replaceBlock
            cleanup_backups: Delete backups after a successful commit
            **options: FileTransaction options for this batch

        Returns:
            CommitResult annotated with the transaction id
        """
        tx = self.create(**options)

        structural: List[FileError] = []
        for edit in edits:
            file_path = pick_field(edit, "file_path", "filePath")
            try:
                tx.stage(file_path, edit)
            except StructuralError as e:
                structural.append(
                    FileError(
                        file_path=str(file_path or ""),
                        error=e.message,
                        category=e.category.value,
                    )
                )

        if structural:
            return self._reject(tx, "Invalid edits", structural)

        validation = tx.validate()
        if not validation.valid:
            return self._reject(tx, "Validation failed", validation.errors, validation)

        result = tx.commit()

        if result.success and cleanup_backups:
            tx.cleanup_backups()

        return result

    def _reject(
        self,
        tx: FileTransaction,
        error: str,
        errors: List[FileError],
        validation: Optional[ValidationResult] = None,
    ) -> CommitResult:
        tx.abort()
        self.remove(tx.id)
        logger.info(f"Transaction {tx.id} rejected: {error} ({len(errors)} error(s))")
        return CommitResult(
            success=False,
            transaction_id=tx.id,
            error=error,
            errors=errors,
            validation=validation,
        )

    # ========================================================================
    # Status
    # ========================================================================

    def get_status(self) -> Dict[str, Any]:
        """Get manager status.

        Returns:
            Active transaction counts by state plus history size
        """
        states: Dict[str, int] = {}
        for tx in self.transactions.values():
            states[tx.state.value] = states.get(tx.state.value, 0) + 1

        return {
            "active_transactions": len(self.transactions),
            "history_size": len(self.history),
            "max_history": self.max_history,
            "state_breakdown": states,
        }


# ============================================================================
# Convenience functions
# ============================================================================


def execute_atomic(
    edits: Iterable[EditInput], base_dir: PathLike, **options: Any
) -> CommitResult:
    """Apply a batch of edits atomically with a throwaway transaction.

    Raises:
        StructuralError: If an edit is malformed
    """
    tx = FileTransaction(base_dir, **options)
    tx.stage_all(edits)

    validation = tx.validate()
    if not validation.valid:
        return CommitResult(
            success=False,
            transaction_id=tx.id,
            error="Validation failed",
            errors=validation.errors,
            validation=validation,
        )

    return tx.commit()


def validate_edits(
    edits: Iterable[EditInput], base_dir: PathLike, **options: Any
) -> ValidationResult:
    """Dry-run a batch of edits without writing anything.

    Raises:
        StructuralError: If an edit is malformed
    """
    tx = FileTransaction(base_dir, **options)
    tx.stage_all(edits)
    return tx.validate()
