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

"""Error types for patching and file transactions.

This module provides:
- A base exception carrying category, details and a recovery hint
- Structural errors raised when an edit is malformed
- Patch errors (not found, ambiguous) with diagnostics for the caller
- File access, write, backup and rollback errors recorded per file
- InvalidStateTransition for illegal transaction lifecycle calls
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from filetx.config import MIN_SEARCH_LENGTH

if TYPE_CHECKING:
    from filetx.patch.protocol import SimilarMatch


# =============================================================================
# Error Categories
# =============================================================================


class ErrorCategory(Enum):
    """Categories of errors for classification and reporting."""

    STRUCTURAL = "structural"
    NOT_FOUND = "not_found"
    AMBIGUOUS_MATCH = "ambiguous_match"
    FILE_ACCESS = "file_access"
    WRITE = "write"
    BACKUP = "backup"
    ROLLBACK = "rollback"
    INVALID_STATE = "invalid_state"
    UNKNOWN = "unknown"


# =============================================================================
# Custom Exception Types
# =============================================================================


class FileTxError(Exception):
    """Base exception for all filetx errors.

    Provides structured error information including:
    - Error category
    - Free-form details for JSON results
    - Recovery hint aimed at whoever proposed the edit
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        details: Optional[Dict[str, Any]] = None,
        recovery_hint: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.details = details or {}
        self.recovery_hint = recovery_hint

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.message,
            "category": self.category.value,
            "recovery_hint": self.recovery_hint,
            "details": self.details,
        }

    def __str__(self) -> str:
        result = self.message
        if self.recovery_hint:
            result += f"\nRecovery hint: {self.recovery_hint}"
        return result


class StructuralError(FileTxError):
    """Malformed edit record, rejected before any file is touched."""

    def __init__(
        self, issues: List[str], min_search_length: int = MIN_SEARCH_LENGTH, **kwargs: Any
    ):
        super().__init__(
            f"Invalid edit: {', '.join(issues)}",
            category=ErrorCategory.STRUCTURAL,
            recovery_hint=(
                f"Provide filePath, a searchBlock of at least {min_search_length} "
                "characters and a replaceBlock."
            ),
            **kwargs,
        )
        self.issues = list(issues)
        self.details["issues"] = self.issues


class PatchError(FileTxError):
    """Errors raised while locating a search block in content."""


class NotFoundError(PatchError):
    """The search block does not occur in the content."""

    def __init__(
        self,
        message: str,
        suggestion: Optional["SimilarMatch"] = None,
        **kwargs: Any,
    ):
        super().__init__(
            message,
            category=ErrorCategory.NOT_FOUND,
            recovery_hint=(
                f"Closest match starts at line {suggestion.line}. Copy the search block verbatim from the file."
                if suggestion
                else "Copy the search block verbatim from the current file content."
            ),
            **kwargs,
        )
        self.suggestion = suggestion
        if suggestion is not None:
            self.details["suggestion"] = suggestion.model_dump(by_alias=True)


class AmbiguousMatchError(PatchError):
    """The search block occurs more than once in the content."""

    def __init__(self, message: str, count: int, **kwargs: Any):
        super().__init__(
            message,
            category=ErrorCategory.AMBIGUOUS_MATCH,
            recovery_hint="Add more surrounding lines to the search block so it matches exactly once.",
            **kwargs,
        )
        self.count = count
        self.details["count"] = count


class FileAccessError(FileTxError):
    """A staged file could not be read."""

    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    UNREADABLE = "unreadable"

    def __init__(self, message: str, file_path: str, reason: str, **kwargs: Any):
        super().__init__(message, category=ErrorCategory.FILE_ACCESS, **kwargs)
        self.file_path = file_path
        self.reason = reason
        self.details["file_path"] = file_path
        self.details["reason"] = reason

    @classmethod
    def from_os_error(cls, file_path: str, error: BaseException) -> "FileAccessError":
        """Classify an exception raised while reading ``file_path``."""
        if isinstance(error, FileNotFoundError):
            return cls(f"File not found: {file_path}", file_path, cls.NOT_FOUND)
        if isinstance(error, PermissionError):
            return cls(f"Permission denied: {file_path}", file_path, cls.PERMISSION_DENIED)
        return cls(f"Cannot read {file_path}: {error}", file_path, cls.UNREADABLE)


class WriteError(FileTxError):
    """Writing modified content to disk failed."""

    def __init__(self, message: str, file_path: str, **kwargs: Any):
        super().__init__(message, category=ErrorCategory.WRITE, **kwargs)
        self.file_path = file_path
        self.details["file_path"] = file_path


class BackupError(FileTxError):
    """Copying a file's pre-image into the backup directory failed."""

    def __init__(self, message: str, file_path: str, **kwargs: Any):
        super().__init__(
            message,
            category=ErrorCategory.BACKUP,
            recovery_hint="Check that the backup directory is writable and has free space.",
            **kwargs,
        )
        self.file_path = file_path
        self.details["file_path"] = file_path


class RollbackError(FileTxError):
    """Restoring a single file during rollback failed."""

    def __init__(self, message: str, file_path: str, **kwargs: Any):
        super().__init__(message, category=ErrorCategory.ROLLBACK, **kwargs)
        self.file_path = file_path
        self.details["file_path"] = file_path


class InvalidStateTransition(FileTxError):
    """An operation was called from a state that does not allow it."""

    def __init__(
        self,
        current: str,
        target: Optional[str] = None,
        operation: Optional[str] = None,
        allowed: Optional[List[str]] = None,
        **kwargs: Any,
    ):
        action = f"{operation}()" if operation else f"transition to {target}"
        message = f"Cannot {action} from state {current}"
        if allowed:
            message += f". Expected: {' or '.join(allowed)}"
        super().__init__(message, category=ErrorCategory.INVALID_STATE, **kwargs)
        self.current = current
        self.target = target
        self.operation = operation
        self.details["current"] = current
        self.details["target"] = target
        self.details["operation"] = operation
