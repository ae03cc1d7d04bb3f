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

"""Configuration for file transactions.

Values can be overridden through ``FILETX_*`` environment variables, e.g.
``FILETX_CREATE_BACKUPS=false`` or ``FILETX_MAX_HISTORY=20``.

The base directory is deliberately not configurable here: every
transaction and manager takes it as a required constructor argument.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BACKUP_DIR_NAME = ".file-tx-backups"
MIN_SEARCH_LENGTH = 5
SIMILARITY_THRESHOLD = 0.6


class FileTxSettings(BaseSettings):
    """Defaults shared by transactions and the transaction manager."""

    model_config = SettingsConfigDict(
        env_prefix="FILETX_",
        case_sensitive=False,
        extra="ignore",
    )

    create_backups: bool = Field(True, description="Copy pre-images before writing")
    validate_before_commit: bool = Field(
        True, description="Run validate() from commit() when not yet validated"
    )
    backup_dir_name: str = Field(
        DEFAULT_BACKUP_DIR_NAME, description="Backup directory name under base_dir"
    )
    max_history: int = Field(100, gt=0, description="Retired transactions kept in history")
    min_search_length: int = Field(MIN_SEARCH_LENGTH, ge=1)
    similarity_threshold: float = Field(SIMILARITY_THRESHOLD, ge=0.0, le=1.0)
    encoding: str = "utf-8"
    lock_commits: bool = Field(True, description="Serialize commits touching the same path")


@lru_cache(maxsize=1)
def get_settings() -> FileTxSettings:
    """Get the process-wide settings instance."""
    return FileTxSettings()


def reset_settings() -> None:
    """Drop the cached settings so the environment is read again.

    This is primarily useful for testing.
    """
    get_settings.cache_clear()
