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

"""Tests for patch/validator.py module."""

from filetx.patch import Edit, validate_edit


class TestValidateEdit:
    """Tests for validate_edit."""

    def test_valid_wire_record(self):
        result = validate_edit(
            {"filePath": "src/app.py", "searchBlock": "old_call()", "replaceBlock": "new_call()"}
        )

        assert result.valid
        assert result.issues == []

    def test_valid_model(self):
        edit = Edit(file_path="src/app.py", search_block="old_call()", replace_block="")
        assert validate_edit(edit).valid

    def test_null_edit(self):
        result = validate_edit(None)

        assert not result.valid
        assert result.issues == ["Edit object is null or undefined"]

    def test_all_issues_reported(self):
        result = validate_edit({})

        assert result.issues == [
            "searchBlock is required and must be a string",
            "replaceBlock is required (can be empty string to delete)",
            "filePath is required and must be a string",
        ]

    def test_search_too_short_after_trim(self):
        result = validate_edit({"filePath": "a.py", "searchBlock": "  abc  \n", "replaceBlock": "x"})

        assert result.issues == ["searchBlock is too short (must be at least 5 characters)"]

    def test_custom_min_length(self):
        edit = {"filePath": "a.py", "searchBlock": "abc", "replaceBlock": "x"}
        assert validate_edit(edit, min_search_length=3).valid

    def test_empty_replace_allowed(self):
        assert validate_edit({"filePath": "a.py", "searchBlock": "remove me", "replaceBlock": ""}).valid

    def test_null_replace(self):
        result = validate_edit({"filePath": "a.py", "searchBlock": "remove me", "replaceBlock": None})
        assert result.issues == ["replaceBlock is required (can be empty string to delete)"]

    def test_non_string_replace(self):
        result = validate_edit({"filePath": "a.py", "searchBlock": "remove me", "replaceBlock": 42})
        assert result.issues == ["replaceBlock must be a string"]

    def test_non_string_search(self):
        result = validate_edit({"filePath": "a.py", "searchBlock": ["x"], "replaceBlock": ""})
        assert result.issues == ["searchBlock is required and must be a string"]

    def test_missing_file_path_on_model(self):
        edit = Edit(search_block="old_call()", replace_block="new_call()")
        assert validate_edit(edit).issues == ["filePath is required and must be a string"]

    def test_snake_case_record(self):
        result = validate_edit(
            {"file_path": "a.py", "search_block": "old_call()", "replace_block": "new_call()"}
        )
        assert result.valid
