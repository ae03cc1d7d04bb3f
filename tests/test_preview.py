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

"""Tests for transaction/preview.py module."""

import io

import pytest
from rich.console import Console

from filetx.transaction.preview import render_diff, render_status, render_validation


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=300, color_system=None)


def _output(console: Console) -> str:
    return console.file.getvalue()


class TestRenderDiff:
    """Tests for render_diff."""

    def test_not_validated(self, console):
        render_diff(None, console)
        assert "No preview available" in _output(console)

    def test_changed_file(self, tx, console):
        tx.stage("a.txt", {"searchBlock": "alpha original line", "replaceBlock": "alpha changed line"})
        tx.validate()

        render_diff(tx.get_diff("a.txt"), console)

        output = _output(console)
        assert "~ Modify:" in output
        assert "alpha changed line" in output
        assert "Diff (3 -> 3 lines)" in output

    def test_unchanged_file(self, tx, console):
        tx.stage("foo.txt", {"searchBlock": "hello", "replaceBlock": "hello"})
        tx.validate()

        render_diff(tx.get_diff("foo.txt"), console)

        assert "No changes" in _output(console)


class TestRenderValidation:
    """Tests for render_validation."""

    def test_valid(self, tx, console):
        tx.stage("foo.txt", {"searchBlock": "hello", "replaceBlock": "goodbye"})

        render_validation(tx.validate(), console)

        output = _output(console)
        assert "ok" in output
        assert "All edits apply cleanly" in output

    def test_invalid_with_suggestion(self, workspace, tx, console):
        (workspace / "calc.py").write_text(
            "def total(items):\n    result = compute_total(items, tax)\n    return result\n"
        )
        tx.stage(
            "calc.py",
            {"searchBlock": "result = compute_total(items, taxes)", "replaceBlock": "x"},
        )

        render_validation(tx.validate(), console)

        output = _output(console)
        assert "invalid" in output
        assert "closest: line 2" in output
        assert "1 error(s)" in output

    def test_missing_file(self, tx, console):
        tx.stage("nope.txt", {"searchBlock": "hello", "replaceBlock": "x"})

        render_validation(tx.validate(), console)

        assert "File not found" in _output(console)


class TestRenderStatus:
    """Tests for render_status."""

    def test_lists_transactions(self, tx, console):
        tx.stage("a.txt", {"searchBlock": "alpha original line", "replaceBlock": "x"})

        render_status([tx], console)

        output = _output(console)
        assert tx.id in output
        assert "pending" in output
