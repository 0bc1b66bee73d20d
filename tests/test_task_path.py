"""
Test the positional path value type, independently of any storage.
"""

import pytest
from pydantic import ValidationError

from activitymgr.models import Task
from activitymgr.services.task_path import MAX_NUMBER, TaskPath
from activitymgr.services.tree import sort_by_full_path


class TestTaskPathEncoding:

    def test_numbers_are_two_hex_digits(self):
        assert TaskPath.encode_number(1) == "01"
        assert TaskPath.encode_number(10) == "0a"
        assert TaskPath.encode_number(MAX_NUMBER) == "ff"

    def test_number_out_of_range_rejected(self):
        with pytest.raises(ValueError):
            TaskPath.encode_number(MAX_NUMBER + 1)
        with pytest.raises(ValueError):
            TaskPath.encode_number(-1)

    def test_full_path_appends_number_to_path(self):
        assert TaskPath.full_path_of("", 1) == "01"
        assert TaskPath.full_path_of("0102", 3) == "010203"

    def test_invalid_values_rejected(self):
        with pytest.raises(ValidationError):
            TaskPath("012")
        with pytest.raises(ValidationError):
            TaskPath("0g")

    def test_value_is_normalized_to_lower_case(self):
        assert str(TaskPath("0A0B")) == "0a0b"


class TestTaskPathNavigation:

    def test_root_level(self):
        root = TaskPath()
        assert root.is_root
        assert root.depth == 0
        assert root.segments == []
        with pytest.raises(ValueError):
            root.parent

    def test_parent_and_number(self):
        path = TaskPath("01020a")
        assert path.depth == 3
        assert path.segments == [1, 2, 10]
        assert path.number == 10
        assert path.parent == TaskPath("0102")
        assert path.parent.parent.parent.is_root

    def test_child(self):
        assert TaskPath("01").child(2) == TaskPath("0102")

    def test_prefix_relations(self):
        parent = TaskPath("01")
        assert parent.is_prefix_of("01")
        assert parent.is_prefix_of("0102")
        assert not parent.is_ancestor_of("01")
        assert parent.is_ancestor_of("010203")
        assert not parent.is_ancestor_of("0201")
        assert TaskPath().is_ancestor_of("01")

    def test_rebase_replaces_prefix(self):
        """A subtree moved from 0102 to 03 keeps its relative part."""
        assert TaskPath("010205").rebase(4, "03") == TaskPath("0305")
        assert TaskPath("0102").rebase(4, "0301") == TaskPath("0301")

    def test_rebase_longer_than_path_rejected(self):
        with pytest.raises(ValueError):
            TaskPath("01").rebase(4, "02")


class TestFullPathOrdering:

    def test_string_order_is_tree_order(self):
        """
        Scenario: 0101 has a child 010101, and a sibling 0102.
        Expected: depth-first order 0101, 010101, 0102 (a numeric reading
        of the digits would put 0102 before 010101).
        """
        tasks = [
            Task(code="B", path="01", number=2),
            Task(code="A1", path="0101", number=1),
            Task(code="A", path="01", number=1),
        ]

        ordered = sort_by_full_path(tasks)

        assert [task.full_path for task in ordered] == ["0101", "010101", "0102"]
        assert [task.code for task in ordered] == ["A", "A1", "B"]
