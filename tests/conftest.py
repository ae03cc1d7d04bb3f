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

"""Shared fixtures for filetx tests."""

import os

import pytest

from filetx.config import FileTxSettings, reset_settings
from filetx.transaction import FileTransaction, PathLockRegistry


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    """Keep FILETX_* variables from the environment out of tests."""
    for key in list(os.environ):
        if key.upper().startswith("FILETX_"):
            monkeypatch.delenv(key, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings():
    return FileTxSettings()


@pytest.fixture
def registry():
    return PathLockRegistry()


@pytest.fixture
def workspace(tmp_path):
    """Project directory with a few text files."""
    (tmp_path / "foo.txt").write_text("hello world")
    (tmp_path / "a.txt").write_text("alpha original line\nsecond line of a\n")
    (tmp_path / "b.txt").write_text("bravo original line\nsecond line of b\n")
    return tmp_path


@pytest.fixture
def tx(workspace, settings, registry):
    return FileTransaction(workspace, settings=settings, lock_registry=registry)
