"""
Test the reporting side: task sums, contribution listings and the
day-by-day interval grid.
"""

from datetime import date

import pytest

from activitymgr import Collaborator
from activitymgr.exceptions import ContributorRequiredError, InvalidIntervalError
from activitymgr.services.aggregation import count_days_between


@pytest.fixture
def project(manager, make_task, collaborator, contribute):
    """
    PRJ
    ├── A  budget 300, initially consumed 20, todo 200
    └── B  budget 100, todo 50

    jdoe logs A 13/05 (100), A 14/05 (50), B 14/05 (25);
    asmith logs A 20/05 (75).
    """
    prj = make_task(None, "PRJ")
    a = make_task(prj, "A", budget=300, initially_consumed=20, todo=200)
    b = make_task(prj, "B", budget=100, todo=50)
    asmith = manager.create_collaborator(
        Collaborator(login="asmith", first_name="Alice", last_name="Smith")
    )

    contribute(a, date(2024, 5, 13), 100)
    contribute(a, date(2024, 5, 14), 50)
    contribute(b, date(2024, 5, 14), 25)
    contribute(a, date(2024, 5, 20), 75, contributor=asmith)

    return {"prj": prj, "a": a, "b": b, "jdoe": collaborator, "asmith": asmith}


class TestCountDaysBetween:

    def test_same_day_is_zero(self):
        assert count_days_between(date(2024, 5, 13), date(2024, 5, 13)) == 0

    def test_order_does_not_matter(self):
        assert count_days_between(date(2024, 5, 13), date(2024, 5, 20)) == 7
        assert count_days_between(date(2024, 5, 20), date(2024, 5, 13)) == 7

    def test_across_year_and_leap_day(self):
        assert count_days_between(date(2019, 12, 31), date(2020, 3, 1)) == 61


class TestTaskSums:

    def test_container_aggregates_its_subtree(self, manager, project):
        sums = manager.get_task_sums(project["prj"])

        assert sums.budget_sum == 400
        assert sums.initially_consumed_sum == 20
        assert sums.todo_sum == 250
        assert sums.consumed_sum == 250
        assert sums.contributions_nb == 4

    def test_leaf_uses_its_own_figures(self, manager, project):
        sums = manager.get_task_sums(project["a"], from_date=date(2024, 5, 14))

        assert sums.budget_sum == 300
        assert sums.todo_sum == 200
        assert sums.consumed_sum == 125
        assert sums.contributions_nb == 2

    def test_todo_as_of_a_past_date(self, manager, project):
        """
        Scenario: the 20/05 contribution (75) is after the end of the period.
        Expected: it is excluded from the consumed figure and added back to
        the todo, since it was still to do at that date.
        """
        sums = manager.get_task_sums(project["prj"], to_date=date(2024, 5, 14))

        assert sums.consumed_sum == 175
        assert sums.contributions_nb == 3
        assert sums.todo_sum == 325

    def test_whole_model(self, manager, project, make_task):
        make_task(None, "OTHER", budget=10)

        sums = manager.get_task_sums(None)

        assert sums.budget_sum == 410
        assert sums.consumed_sum == 250

    def test_empty_model(self, manager):
        sums = manager.get_task_sums(None)

        assert sums.budget_sum == 0
        assert sums.consumed_sum == 0
        assert sums.contributions_nb == 0

    def test_reversed_interval_rejected(self, manager, project):
        with pytest.raises(InvalidIntervalError):
            manager.get_task_sums(project["prj"], date(2024, 5, 20), date(2024, 5, 1))


class TestContributionListings:

    def test_ordered_by_date_then_task_position(self, manager, project):
        contributions = manager.get_contributions(task=project["prj"])

        assert [(c.task_id, c.day) for c in contributions] == [
            (project["a"].id, 13),
            (project["a"].id, 14),
            (project["b"].id, 14),
            (project["a"].id, 20),
        ]

    def test_leaf_filter(self, manager, project):
        contributions = manager.get_contributions(task=project["b"])

        assert len(contributions) == 1
        assert contributions[0].duration_id == 25

    def test_contributor_and_interval_filters(self, manager, project):
        assert manager.get_contributions_count(contributor=project["jdoe"]) == 3
        assert manager.get_contributions_sum(
            contributor=project["jdoe"], from_date=date(2024, 5, 14), to_date=date(2024, 5, 14)
        ) == 75

    def test_contributors_by_login(self, manager, project):
        assert [c.login for c in manager.get_contributors()] == ["asmith", "jdoe"]
        assert [c.login for c in manager.get_contributors(project["b"])] == ["jdoe"]
        assert manager.get_contributors(to_date=date(2024, 5, 1)) == []

    def test_contributed_tasks(self, manager, project):
        tasks = manager.get_contributed_tasks(contributor=project["asmith"])
        assert [task.code for task in tasks] == ["A"]

        tasks = manager.get_contributed_tasks()
        assert [task.code for task in tasks] == ["A", "B"]

    def test_contributed_task_containers(self, manager, project):
        containers = manager.get_contributed_task_containers()

        assert [task.code for task in containers] == ["PRJ"]


class TestIntervalContributions:

    def test_one_slot_per_day(self, manager, project):
        grid = manager.get_interval_contributions(
            project["jdoe"], None, date(2024, 5, 13), date(2024, 5, 15)
        )

        assert grid.days_count == 3
        assert [row.task_code_path for row in grid.task_contributions] == ["/PRJ/A", "/PRJ/B"]

        a_row, b_row = grid.task_contributions
        assert [slot.duration_id if slot else None for slot in a_row.contributions] == [100, 50, None]
        assert [slot.duration_id if slot else None for slot in b_row.contributions] == [None, 25, None]

    def test_other_contributors_excluded(self, manager, project):
        grid = manager.get_interval_contributions(
            project["asmith"], project["prj"], date(2024, 5, 13), date(2024, 5, 20)
        )

        assert len(grid.task_contributions) == 1
        row = grid.task_contributions[0]
        assert row.task.code == "A"
        assert row.contributions[7].duration_id == 75
        assert row.contributions[:7] == [None] * 7

    def test_rows_follow_tree_order(self, manager, make_task, collaborator, contribute):
        """
        Scenario: A1 (010101) is a child of A (0101), and B (0102) is A's sibling.
        Expected: A1's row comes first, as in the tree.
        """
        project = make_task(None, "P")
        a = make_task(project, "A")
        b = make_task(project, "B")
        a1 = make_task(a, "A1")
        day = date(2024, 5, 13)
        contribute(b, day, 25)
        contribute(a1, day, 50)

        grid = manager.get_interval_contributions(collaborator, None, day, day)

        assert [row.task.code for row in grid.task_contributions] == ["A1", "B"]

    def test_contributor_required(self, manager, project):
        with pytest.raises(ContributorRequiredError):
            manager.get_interval_contributions(None, None, date(2024, 5, 13), date(2024, 5, 15))

    def test_reversed_interval_rejected(self, manager, project):
        with pytest.raises(InvalidIntervalError):
            manager.get_interval_contributions(
                project["jdoe"], None, date(2024, 5, 15), date(2024, 5, 13)
            )
