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

"""Atomic multi-file search/replace transactions.

Provides transaction-like editing with:
- Staging of search/replace edits across many files
- Dry-run validation with per-file and per-edit diagnostics
- Backups of every file before any of them is written
- Rollback from backups, falling back to in-memory snapshots
- Serializable records for recovery from another process

Atomicity is emulated: files are written one at a time, and a failed
write rolls back the files already written. A crash during commit with
backups disabled cannot be recovered.
"""

import difflib
import logging
import os
import secrets
import shutil
import time
from contextlib import nullcontext
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, ContextManager, Dict, Iterable, List, Mapping, Optional, Union

from filetx.config import FileTxSettings, get_settings
from filetx.errors import (
    BackupError,
    ErrorCategory,
    FileAccessError,
    InvalidStateTransition,
    RollbackError,
    StructuralError,
    WriteError,
)
from filetx.patch.engine import apply_patches
from filetx.patch.protocol import Edit
from filetx.patch.validator import validate_edit
from filetx.transaction.locks import PathLockRegistry, get_lock_registry
from filetx.transaction.protocol import (
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

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]
EditInput = Union[Edit, Mapping[str, Any]]


def pick_field(record: Any, name: str, alias: str) -> Any:
    """Read a field from a snake_case or camelCase mapping, or an object."""
    if isinstance(record, Mapping):
        return record.get(name, record.get(alias))
    return getattr(record, name, None)


class FileTransaction:
    """A batch of search/replace edits applied to disk all-or-nothing.

    Usage:
        tx = FileTransaction(base_dir="/path/to/project")
        tx.stage("src/app.py", {"searchBlock": "old()", "replaceBlock": "new()"})

        validation = tx.validate()
        if validation.valid:
            print(tx.preview("src/app.py"))
            result = tx.commit()

    The base directory is required; relative paths are resolved against it
    and every path is canonicalized once, at stage time.

    Not safe for concurrent use from several threads. Two transactions
    editing the same file serialize their commits through the shared
    PathLockRegistry (when ``lock_commits`` is enabled), but a file
    changed by another process between validate() and commit() is
    silently overwritten.
    """

    def __init__(
        self,
        base_dir: PathLike,
        *,
        backup_dir: Optional[PathLike] = None,
        create_backups: Optional[bool] = None,
        validate_before_commit: Optional[bool] = None,
        settings: Optional[FileTxSettings] = None,
        lock_registry: Optional[PathLockRegistry] = None,
        transaction_id: Optional[str] = None,
    ):
        """Initialize a transaction.

        Args:
            base_dir: Directory relative paths are resolved against
            backup_dir: Backup directory (default: {base_dir}/.file-tx-backups)
            create_backups: Copy pre-images before writing (default from settings)
            validate_before_commit: Validate from commit() if not yet validated
            settings: Settings override
            lock_registry: Lock registry for commit serialization
            transaction_id: Explicit id, used when restoring from a record
        """
        if base_dir is None or not os.fspath(base_dir):
            raise ValueError("base_dir is required")

        self.settings = settings or get_settings()
        self.id = transaction_id or secrets.token_hex(8)
        self.state = TransactionState.PENDING
        self.created_at = datetime.now(timezone.utc)

        self.base_dir = Path(base_dir).resolve()
        self.backup_dir = (
            Path(self.resolve_path(backup_dir))
            if backup_dir
            else self.base_dir / self.settings.backup_dir_name
        )
        self.create_backups = (
            self.settings.create_backups if create_backups is None else create_backups
        )
        self.validate_before_commit = (
            self.settings.validate_before_commit
            if validate_before_commit is None
            else validate_before_commit
        )

        if lock_registry is not None:
            self._locks: Optional[PathLockRegistry] = lock_registry
        else:
            self._locks = get_lock_registry() if self.settings.lock_commits else None

        # All maps are keyed by canonical path
        self.staged_edits: Dict[str, List[Edit]] = {}
        self.original_contents: Dict[str, str] = {}
        self.modified_contents: Dict[str, str] = {}
        self.backups: Dict[str, str] = {}

        self.validation_errors: List[FileError] = []
        self.commit_errors: List[FileError] = []
        self.rollback_errors: List[FileError] = []

    def __repr__(self) -> str:
        return f"FileTransaction(id={self.id!r}, state={self.state.value}, files={len(self.staged_edits)})"

    # ========================================================================
    # State machine
    # ========================================================================

    def _transition(self, target: TransactionState, operation: Optional[str] = None) -> None:
        if not can_transition(self.state, target):
            raise InvalidStateTransition(
                self.state.value,
                target=target.value,
                operation=operation,
                allowed=sorted(s.value for s in TRANSITIONS[self.state]),
            )
        logger.debug(f"Transaction {self.id}: {self.state.value} -> {target.value}")
        self.state = target

    def _require_state(self, operation: str, *allowed: TransactionState) -> None:
        if self.state not in allowed:
            raise InvalidStateTransition(
                self.state.value,
                operation=operation,
                allowed=[s.value for s in allowed],
            )

    # ========================================================================
    # Staging
    # ========================================================================

    def resolve_path(self, file_path: PathLike) -> str:
        """Resolve a path against base_dir into its canonical form."""
        path = Path(file_path).expanduser()
        if not path.is_absolute():
            path = self.base_dir / path
        return str(path.resolve())

    def stage(self, file_path: PathLike, edit: EditInput) -> "FileTransaction":
        """Stage an edit for a file.

        Args:
            file_path: Path to the file, absolute or relative to base_dir
            edit: Edit model or mapping with searchBlock and replaceBlock

        Returns:
            self, for chaining

        Raises:
            InvalidStateTransition: If the transaction is not PENDING
            StructuralError: If the edit is malformed
        """
        self._require_state("stage", TransactionState.PENDING)

        if edit is None:
            raise StructuralError(validate_edit(None).issues, self.settings.min_search_length)
        if not isinstance(file_path, (str, os.PathLike)) or not os.fspath(file_path):
            raise StructuralError(
                ["filePath is required and must be a string"], self.settings.min_search_length
            )

        resolved = self.resolve_path(file_path)
        fields = {
            "file_path": resolved,
            "search_block": pick_field(edit, "search_block", "searchBlock"),
            "replace_block": pick_field(edit, "replace_block", "replaceBlock"),
        }

        validation = validate_edit(fields, self.settings.min_search_length)
        if not validation.valid:
            raise StructuralError(validation.issues, self.settings.min_search_length)

        staged = Edit(**fields, staged_at=datetime.now(timezone.utc))
        self.staged_edits.setdefault(resolved, []).append(staged)
        return self

    def stage_all(self, edits: Iterable[EditInput]) -> "FileTransaction":
        """Stage several wire-shaped edits, each carrying its own filePath."""
        for edit in edits:
            if edit is None:
                raise StructuralError(validate_edit(None).issues, self.settings.min_search_length)
            self.stage(pick_field(edit, "file_path", "filePath"), edit)
        return self

    def unstage(self, file_path: PathLike) -> "FileTransaction":
        """Remove the staged edits (and any snapshots) for one file."""
        self._require_state("unstage", TransactionState.PENDING)

        resolved = self.resolve_path(file_path)
        self.staged_edits.pop(resolved, None)
        self.original_contents.pop(resolved, None)
        self.modified_contents.pop(resolved, None)
        return self

    def clear(self) -> "FileTransaction":
        """Remove all staged edits and snapshots."""
        self._require_state("clear", TransactionState.PENDING)
        self._discard_staging()
        return self

    def _discard_staging(self) -> None:
        self.staged_edits.clear()
        self.original_contents.clear()
        self.modified_contents.clear()
        self.validation_errors = []

    @property
    def staged_count(self) -> int:
        """Total number of staged edits."""
        return sum(len(edits) for edits in self.staged_edits.values())

    @property
    def staged_files(self) -> List[str]:
        """Canonical paths with staged edits, in staging order."""
        return list(self.staged_edits)

    # ========================================================================
    # Validation and preview
    # ========================================================================

    def validate(self) -> ValidationResult:
        """Dry-run every staged edit against the current file contents.

        Reads each staged file, snapshots it, and applies that file's edits
        in staging order. Nothing is written.

        Returns:
            ValidationResult; the transaction is VALIDATED when valid and
            back in PENDING otherwise
        """
        self._transition(TransactionState.VALIDATING, "validate")
        self.validation_errors = []
        self.original_contents.clear()
        self.modified_contents.clear()

        result = ValidationResult()

        for file_path, edits in self.staged_edits.items():
            file_result = FileValidation(file_path=file_path)
            errors: List[FileError] = []

            try:
                content = self._read(file_path)
            except FileAccessError as e:
                file_result.exists = e.reason != FileAccessError.NOT_FOUND
                errors.append(FileError(file_path=file_path, error=e.message, category=e.category.value))
            else:
                file_result.exists = True
                file_result.readable = True
                self.original_contents[file_path] = content

                patched = apply_patches(content, edits, self.settings.similarity_threshold)
                if patched.ok:
                    file_result.edits_valid = True
                    file_result.preview_available = True
                    self.modified_contents[file_path] = patched.final_content
                else:
                    file_result.failures = patched.errors
                    errors.extend(
                        FileError(file_path=file_path, error=f.error, category=f.category)
                        for f in patched.errors
                    )

            file_result.errors = [e.error for e in errors]
            result.files.append(file_result)
            if errors:
                result.valid = False
                result.errors.extend(errors)

        self.validation_errors = list(result.errors)
        self._transition(
            TransactionState.VALIDATED if result.valid else TransactionState.PENDING
        )

        logger.info(
            f"Transaction {self.id} validated {len(result.files)} file(s): "
            f"{'valid' if result.valid else f'{len(result.errors)} error(s)'}"
        )
        return result

    def preview(self, file_path: PathLike) -> Optional[str]:
        """Modified content computed by validate(), or None."""
        return self.modified_contents.get(self.resolve_path(file_path))

    def get_diff(self, file_path: PathLike, context_lines: int = 3) -> Optional[FileDiff]:
        """Original vs modified content of a validated file, or None."""
        resolved = self.resolve_path(file_path)
        original = self.original_contents.get(resolved)
        modified = self.modified_contents.get(resolved)

        if original is None or modified is None:
            return None

        diff = difflib.unified_diff(
            original.splitlines(keepends=True),
            modified.splitlines(keepends=True),
            fromfile=f"a/{resolved}",
            tofile=f"b/{resolved}",
            n=context_lines,
        )
        return FileDiff(
            file_path=resolved,
            original=original,
            modified=modified,
            original_lines=len(original.split("\n")),
            modified_lines=len(modified.split("\n")),
            changed=original != modified,
            unified_diff="".join(diff),
        )

    # ========================================================================
    # Disk operations
    # ========================================================================

    def _read(self, file_path: str) -> str:
        try:
            with open(file_path, "r", encoding=self.settings.encoding, newline="") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise FileAccessError.from_os_error(file_path, e) from e

    def _write(self, file_path: str, content: str) -> None:
        with open(file_path, "w", encoding=self.settings.encoding, newline="") as f:
            f.write(content)

    def _hold_locks(self, paths: Iterable[str]) -> ContextManager[Any]:
        if self._locks is None:
            return nullcontext()
        return self._locks.acquire(paths)

    def create_backup(self, file_path: PathLike) -> str:
        """Copy a file's on-disk bytes into the backup directory.

        Backups are named ``{id}-{unix_ms}-{basename}``. Calling this again
        for a file already backed up by this transaction is a no-op.

        Returns:
            Path of the backup copy

        Raises:
            BackupError: If the copy fails
        """
        resolved = self.resolve_path(file_path)
        if resolved in self.backups:
            return self.backups[resolved]

        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            stamp = int(time.time() * 1000)
            backup_path = self.backup_dir / f"{self.id}-{stamp}-{Path(resolved).name}"
            # Same basename in the same millisecond
            while backup_path.exists():
                stamp += 1
                backup_path = self.backup_dir / f"{self.id}-{stamp}-{Path(resolved).name}"
            shutil.copy2(resolved, backup_path)
        except OSError as e:
            raise BackupError(f"Failed to back up {resolved}: {e}", resolved) from e

        self.backups[resolved] = str(backup_path)
        logger.debug(f"Backed up {resolved} -> {backup_path}")
        return str(backup_path)

    def commit(self) -> CommitResult:
        """Write all validated modifications to disk.

        Validates first when not yet VALIDATED, failing without touching
        disk if invalid. With validate_before_commit off, only a VALIDATED
        transaction can be committed. Backs up every modified file before
        writing any of them, then writes files one at a time in staging
        order. The first failed write rolls back the files already written.

        Returns:
            CommitResult; ``rollback_performed`` is set when a write failed

        Raises:
            InvalidStateTransition: If not PENDING or VALIDATED, or if not
                VALIDATED while validate_before_commit is off
        """
        self._require_state("commit", TransactionState.PENDING, TransactionState.VALIDATED)

        if self.state is not TransactionState.VALIDATED:
            # modified_contents may hold only the files that passed a failed validate()
            if not self.validate_before_commit:
                raise InvalidStateTransition(
                    self.state.value,
                    operation="commit",
                    allowed=[TransactionState.VALIDATED.value],
                )
            validation = self.validate()
            if not validation.valid:
                return CommitResult(
                    success=False,
                    error="Validation failed",
                    errors=validation.errors,
                    validation=validation,
                    transaction_id=self.id,
                )

        self._transition(TransactionState.COMMITTING, "commit")
        self.commit_errors = []

        files = list(self.modified_contents)
        result = CommitResult(success=True, transaction_id=self.id)

        with self._hold_locks(files):
            if self.create_backups:
                for file_path in files:
                    try:
                        self.create_backup(file_path)
                    except BackupError as e:
                        return self._fail_commit(result, file_path, e)
                result.backups_created = sum(1 for f in files if f in self.backups)

            written: List[str] = []
            for file_path in files:
                try:
                    self._write(file_path, self.modified_contents[file_path])
                except (OSError, UnicodeError) as e:
                    error = WriteError(f"Failed to write {file_path}: {e}", file_path)
                    return self._fail_commit(result, file_path, error, written)

                written.append(file_path)
                result.files_committed += 1
                result.edits_applied += len(self.staged_edits.get(file_path, []))

            self._transition(TransactionState.COMMITTED)

        logger.info(
            f"Transaction {self.id} committed "
            f"({result.files_committed} files, {result.edits_applied} edits, "
            f"{result.backups_created} backups)"
        )
        return result

    def _fail_commit(
        self,
        result: CommitResult,
        file_path: str,
        error: Union[BackupError, WriteError],
        written: Optional[List[str]] = None,
    ) -> CommitResult:
        failure = FileError(file_path=file_path, error=error.message, category=error.category.value)
        self.commit_errors.append(failure)
        result.success = False
        result.error = error.message
        result.errors.append(failure)
        logger.error(f"Transaction {self.id} commit failed: {error.message}")

        if written is None:
            # Backup phase; nothing was written
            self._transition(TransactionState.FAILED)
            return result

        logger.warning(f"Rolling back {len(written)} written file(s)")
        rollback = self._rollback(written)
        result.rollback_performed = True
        result.rollback = rollback
        result.errors.extend(rollback.errors)
        return result

    def rollback(self, files: Optional[Iterable[PathLike]] = None) -> RollbackResult:
        """Restore files to their pre-transaction content.

        Each file is restored from its backup copy when one exists, and
        otherwise (or if that copy fails) from the snapshot taken by
        validate(). Failures are recorded per file and do not stop the
        remaining files.

        Args:
            files: Files to restore (default: every file with a snapshot)

        Returns:
            RollbackResult; the transaction ends ROLLED_BACK when every
            file was restored and FAILED otherwise
        """
        if files is None:
            targets = list(self.original_contents)
        else:
            targets = [self.resolve_path(f) for f in files]

        with self._hold_locks(targets):
            return self._rollback(targets)

    def _rollback(self, targets: List[str]) -> RollbackResult:
        self._transition(TransactionState.ROLLING_BACK, "rollback")
        self.rollback_errors = []
        result = RollbackResult()

        for file_path in targets:
            backup_path = self.backups.get(file_path)
            if backup_path:
                try:
                    shutil.copy2(backup_path, file_path)
                    result.restored_from[file_path] = "backup"
                    result.files_rolled_back += 1
                    continue
                except OSError as e:
                    logger.warning(
                        f"Backup restore failed for {file_path}: {e}; using in-memory snapshot"
                    )
                    result.backup_failures.append(
                        FileError(file_path=file_path, error=str(e), category=ErrorCategory.BACKUP.value)
                    )

            original = self.original_contents.get(file_path)
            if original is None:
                error = RollbackError(f"No backup or snapshot for {file_path}", file_path)
            else:
                try:
                    self._write(file_path, original)
                    result.restored_from[file_path] = "snapshot"
                    result.files_rolled_back += 1
                    continue
                except (OSError, UnicodeError) as e:
                    error = RollbackError(f"Failed to restore {file_path}: {e}", file_path)

            failure = FileError(file_path=file_path, error=error.message, category=error.category.value)
            result.errors.append(failure)
            self.rollback_errors.append(failure)

        result.success = not result.errors
        self._transition(
            TransactionState.ROLLED_BACK if result.success else TransactionState.FAILED
        )

        if result.success:
            logger.info(f"Transaction {self.id} rolled back {result.files_rolled_back} file(s)")
        else:
            logger.warning(
                f"Transaction {self.id} rollback incomplete: {len(result.errors)} file(s) not restored"
            )
        return result

    def abort(self) -> "FileTransaction":
        """Abandon the transaction, discarding staged edits and snapshots.

        Raises:
            InvalidStateTransition: If the transaction is COMMITTED; use
                rollback() to undo a completed commit
        """
        if self.state is TransactionState.COMMITTED:
            raise InvalidStateTransition(
                self.state.value, target=TransactionState.ABORTED.value, operation="abort"
            )

        self._transition(TransactionState.ABORTED, "abort")
        self._discard_staging()
        logger.info(f"Transaction {self.id} aborted")
        return self

    def cleanup_backups(self) -> int:
        """Delete the backups created by this transaction.

        Returns:
            Number of backup files deleted
        """
        deleted = 0
        for backup_path in self.backups.values():
            try:
                os.remove(backup_path)
                deleted += 1
            except OSError as e:
                logger.debug(f"Ignoring backup cleanup failure for {backup_path}: {e}")

        self.backups.clear()
        return deleted

    # ========================================================================
    # Status and persistence
    # ========================================================================

    def get_status(self) -> Dict[str, Any]:
        """Get transaction status.

        Returns:
            Status dictionary
        """
        now = datetime.now(timezone.utc)
        return {
            "id": self.id,
            "state": self.state.value,
            "staged_files": len(self.staged_edits),
            "staged_edits": self.staged_count,
            "validation_errors": len(self.validation_errors),
            "commit_errors": len(self.commit_errors),
            "rollback_errors": len(self.rollback_errors),
            "backups_created": len(self.backups),
            "created_at": self.created_at.isoformat(),
            "age_seconds": (now - self.created_at).total_seconds(),
        }

    def to_record(self) -> TransactionRecord:
        """Capture the transaction, including pre-image snapshots."""
        return TransactionRecord(
            id=self.id,
            state=self.state,
            created_at=self.created_at,
            base_dir=str(self.base_dir),
            backup_dir=str(self.backup_dir),
            create_backups=self.create_backups,
            validate_before_commit=self.validate_before_commit,
            staged_edits={path: list(edits) for path, edits in self.staged_edits.items()},
            original_contents=dict(self.original_contents),
            backups=dict(self.backups),
            validation_errors=list(self.validation_errors),
            commit_errors=list(self.commit_errors),
            rollback_errors=list(self.rollback_errors),
        )

    @classmethod
    def from_record(
        cls,
        record: TransactionRecord,
        settings: Optional[FileTxSettings] = None,
        lock_registry: Optional[PathLockRegistry] = None,
    ) -> "FileTransaction":
        """Rebuild a transaction, e.g. to roll back after a crash.

        Modified contents are not part of a record; a restored transaction
        can be rolled back but must be validated again before committing.
        """
        tx = cls(
            record.base_dir,
            backup_dir=record.backup_dir,
            create_backups=record.create_backups,
            validate_before_commit=record.validate_before_commit,
            settings=settings,
            lock_registry=lock_registry,
            transaction_id=record.id,
        )
        tx.state = record.state
        tx.created_at = record.created_at
        tx.staged_edits = {path: list(edits) for path, edits in record.staged_edits.items()}
        tx.original_contents = dict(record.original_contents)
        tx.backups = dict(record.backups)
        tx.validation_errors = list(record.validation_errors)
        tx.commit_errors = list(record.commit_errors)
        tx.rollback_errors = list(record.rollback_errors)
        return tx
