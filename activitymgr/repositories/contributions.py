"""
Contribution repository.

Every listing / aggregate accepts the same optional filters:
contributor, task scope (a single task id or a subtree path prefix) and
an inclusive date range. Dates are compared through the integer key
yyyymmdd computed from the three date columns.
"""

from datetime import date

from sqlalchemy import func, or_
from sqlmodel import select

from activitymgr.models import Collaborator, Contribution, Task
from activitymgr.repositories.base import BaseRepository

DATE_KEY = Contribution.year * 10000 + Contribution.month * 100 + Contribution.day


def date_key(day: date) -> int:
    return day.year * 10000 + day.month * 100 + day.day


class ContributionRepository(BaseRepository):

    def get(
        self, contributor_id: int, task_id: int, year: int, month: int, day: int
    ) -> Contribution | None:
        return self.session.get(Contribution, (contributor_id, task_id, year, month, day))

    def get_like(self, contribution: Contribution) -> Contribution | None:
        """Stored row sharing the identity of `contribution`."""
        return self.get(
            contribution.contributor_id,
            contribution.task_id,
            contribution.year,
            contribution.month,
            contribution.day,
        )

    def _filtered(
        self,
        query,
        contributor_id: int | None = None,
        task_id: int | None = None,
        task_prefix: str | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
    ):
        if task_prefix is not None:
            query = query.where(Task.path.startswith(task_prefix))
        if task_id is not None:
            query = query.where(Contribution.task_id == task_id)
        if contributor_id is not None:
            query = query.where(Contribution.contributor_id == contributor_id)
        if from_date is not None:
            query = query.where(DATE_KEY >= date_key(from_date))
        if to_date is not None:
            query = query.where(DATE_KEY <= date_key(to_date))
        return query

    def find(self, **filters) -> list[Contribution]:
        """Matching contributions by date, task position, contributor, duration."""
        query = select(Contribution).join(Task, Task.id == Contribution.task_id)
        query = self._filtered(query, **filters).order_by(
            Contribution.year,
            Contribution.month,
            Contribution.day,
            Task.path,
            Task.number,
            Contribution.contributor_id,
            Contribution.duration_id,
        )
        return list(self.session.exec(query).all())

    def sum_durations(self, **filters) -> int:
        query = select(func.coalesce(func.sum(Contribution.duration_id), 0)).join(
            Task, Task.id == Contribution.task_id
        )
        return int(self.session.exec(self._filtered(query, **filters)).one())

    def count(self, **filters) -> int:
        query = select(func.count()).select_from(Contribution).join(
            Task, Task.id == Contribution.task_id
        )
        return self.session.exec(self._filtered(query, **filters)).one()

    def sum_after(self, after: date, task_id: int | None = None, task_prefix: str | None = None) -> int:
        """Durations logged strictly after `after`."""
        query = select(func.coalesce(func.sum(Contribution.duration_id), 0)).join(
            Task, Task.id == Contribution.task_id
        )
        query = self._filtered(query, task_id=task_id, task_prefix=task_prefix)
        query = query.where(DATE_KEY > date_key(after))
        return int(self.session.exec(query).one())

    def count_for_subtree(self, task_id: int, prefix: str) -> int:
        """Contributions on the task itself or any task below `prefix`."""
        query = (
            select(func.count())
            .select_from(Contribution)
            .join(Task, Task.id == Contribution.task_id)
            .where(or_(Contribution.task_id == task_id, Task.path.startswith(prefix)))
        )
        return self.session.exec(query).one()

    def count_for_collaborator(self, collaborator_id: int) -> int:
        query = (
            select(func.count())
            .select_from(Contribution)
            .where(Contribution.contributor_id == collaborator_id)
        )
        return self.session.exec(query).one()

    def count_for_duration(self, duration_id: int) -> int:
        query = (
            select(func.count())
            .select_from(Contribution)
            .where(Contribution.duration_id == duration_id)
        )
        return self.session.exec(query).one()

    def contributors(self, **filters) -> list[Collaborator]:
        """Distinct collaborators owning at least one matching contribution."""
        ids = select(Contribution.contributor_id).join(Task, Task.id == Contribution.task_id)
        ids = self._filtered(ids, **filters).distinct()
        query = (
            select(Collaborator)
            .where(Collaborator.id.in_(ids))
            .order_by(Collaborator.login)
        )
        return list(self.session.exec(query).all())

    def task_ids(self, **filters) -> list[int]:
        query = select(Contribution.task_id).join(Task, Task.id == Contribution.task_id)
        query = self._filtered(query, **filters).distinct()
        return list(self.session.exec(query).all())
