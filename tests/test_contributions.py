"""
Test contribution bookkeeping: leaf-only rule, todo adjustments and the
optimistic checks against concurrent edits.
"""

from datetime import date

import pytest

from activitymgr import Contribution
from activitymgr.exceptions import (
    ContributionDeletionDetectedError,
    ContributionUpdateDetectedError,
    InvalidDurationError,
    TaskWithSubtasksCannotAcceptContributionsError,
    UnknownCollaboratorError,
)

DAY = date(2024, 5, 13)


@pytest.fixture
def leaf(make_task):
    project = make_task(None, "PRJ")
    return make_task(project, "DEV", budget=500, todo=300)


class TestCreateContribution:

    def test_todo_is_consumed(self, manager, leaf, contribute):
        contribute(leaf, DAY, 75, update_todo=True)

        assert manager.get_task(leaf.id).todo == 225

    def test_todo_never_goes_negative(self, manager, make_task, contribute):
        task = make_task(None, "SMALL", todo=50)

        contribute(task, DAY, 100, update_todo=True)

        assert manager.get_task(task.id).todo == 0

    def test_todo_untouched_without_update(self, manager, leaf, contribute):
        contribute(leaf, DAY, 75, update_todo=False)

        assert manager.get_task(leaf.id).todo == 300

    def test_container_rejected(self, manager, leaf, contribute):
        container = manager.get_parent_task(leaf)

        with pytest.raises(TaskWithSubtasksCannotAcceptContributionsError):
            contribute(container, DAY)

    def test_unknown_duration_rejected(self, manager, leaf, contribute):
        with pytest.raises(InvalidDurationError):
            contribute(leaf, DAY, 30)

        assert manager.get_contributions_count() == 0

    def test_unknown_contributor_rejected(self, manager, leaf):
        with pytest.raises(UnknownCollaboratorError):
            manager.create_contribution(Contribution.on(DAY, 999, leaf.id, 100))


class TestUpdateContribution:

    def test_todo_gets_the_difference(self, manager, leaf, contribute):
        contribution = contribute(leaf, DAY, 50, update_todo=True)
        assert manager.get_task(leaf.id).todo == 250

        contribution.duration_id = 100
        manager.update_contribution(contribution, update_todo=True)

        assert manager.get_task(leaf.id).todo == 200
        assert manager.get_contributions_sum(task=leaf) == 100

    def test_deleted_contribution_detected(self, manager, leaf, contribute):
        contribution = contribute(leaf, DAY, 50)
        manager.remove_contribution(contribution, update_todo=False)

        contribution.duration_id = 75
        with pytest.raises(ContributionDeletionDetectedError):
            manager.update_contribution(contribution, update_todo=True)

    def test_unknown_duration_rejected(self, manager, leaf, contribute):
        contribution = contribute(leaf, DAY, 50)
        contribution.duration_id = 60

        with pytest.raises(InvalidDurationError):
            manager.update_contribution(contribution)


class TestRemoveContribution:

    def test_todo_is_given_back(self, manager, leaf, contribute):
        contribution = contribute(leaf, DAY, 100, update_todo=True)

        manager.remove_contribution(contribution, update_todo=True)

        assert manager.get_task(leaf.id).todo == 300
        assert manager.get_contributions_count(task=leaf) == 0

    def test_concurrent_update_detected(self, manager, leaf, contribute):
        """
        Scenario: the stored contribution now logs 100 but the caller's copy
        still says 50.
        Expected: rejected, otherwise the todo would get 50 back instead of 100.
        """
        contribution = contribute(leaf, DAY, 50)
        newer = Contribution.on(DAY, contribution.contributor_id, leaf.id, 100)
        manager.update_contribution(newer, update_todo=False)

        with pytest.raises(ContributionUpdateDetectedError):
            manager.remove_contribution(contribution, update_todo=True)

        assert manager.get_contributions_count(task=leaf) == 1

    def test_missing_contribution_is_ignored(self, manager, leaf, collaborator):
        ghost = Contribution.on(DAY, collaborator.id, leaf.id, 50)

        manager.remove_contribution(ghost, update_todo=True)

        assert manager.get_task(leaf.id).todo == 300

    def test_bulk_removal_keeps_todo(self, manager, leaf, contribute):
        contributions = [
            contribute(leaf, date(2024, 5, day), 100, update_todo=True) for day in (13, 14)
        ]

        manager.remove_contributions(contributions)

        assert manager.get_contributions_count() == 0
        assert manager.get_task(leaf.id).todo == 100


class TestChangeContributionTask:

    def test_contributions_move_to_another_leaf(self, manager, leaf, make_task, contribute):
        other = make_task(manager.get_parent_task(leaf), "TEST")
        contributions = [contribute(leaf, date(2024, 5, day), 25) for day in (13, 14)]

        moved = manager.change_contribution_task(contributions, other)

        assert all(contribution.task_id == other.id for contribution in moved)
        assert manager.get_contributions_count(task=leaf) == 0
        assert manager.get_contributions_count(task=other) == 2

    def test_container_rejected(self, manager, leaf, contribute):
        contributions = [contribute(leaf, DAY, 25)]
        container = manager.get_parent_task(leaf)

        with pytest.raises(TaskWithSubtasksCannotAcceptContributionsError):
            manager.change_contribution_task(contributions, container)
