"""
Contribution and aggregation engine.

Reporting queries over contributions. A task filter means "that task"
when it is a leaf and "every task of its subtree" when it has sub tasks.
"""

from datetime import date

from sqlmodel import Session

from activitymgr.exceptions import ContributorRequiredError, InvalidIntervalError
from activitymgr.models import Collaborator, Contribution, Task
from activitymgr.repositories import ContributionRepository, TaskRepository
from activitymgr.schemas import IntervalContributions, TaskContributions, TaskSums
from activitymgr.services import tree


def check_interval(from_date: date | None, to_date: date | None) -> None:
    if from_date is not None and to_date is not None and from_date > to_date:
        raise InvalidIntervalError(from_date, to_date)


def count_days_between(date1: date, date2: date) -> int:
    """
    Number of days separating two dates, whatever their order.

    Also the slot index of `date2` in a day-by-day array starting at
    `date1`: count_days_between(d, d) == 0.
    """
    return abs((date2 - date1).days)


def _task_scope(session: Session, task: Task | None) -> dict:
    if task is None:
        return {}
    if tree.is_leaf(session, task):
        return {"task_id": task.id}
    return {"task_prefix": task.full_path}


def _filters(
    session: Session,
    contributor: Collaborator | None,
    task: Task | None,
    from_date: date | None,
    to_date: date | None,
) -> dict:
    check_interval(from_date, to_date)
    filters = _task_scope(session, task)
    if contributor is not None:
        filters["contributor_id"] = contributor.id
    if from_date is not None:
        filters["from_date"] = from_date
    if to_date is not None:
        filters["to_date"] = to_date
    return filters


def get_contributions(
    session: Session,
    contributor: Collaborator | None = None,
    task: Task | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
) -> list[Contribution]:
    """Contributions ordered by date, task position, contributor and duration."""
    filters = _filters(session, contributor, task, from_date, to_date)
    return ContributionRepository(session).find(**filters)


def get_contributions_sum(
    session: Session,
    contributor: Collaborator | None = None,
    task: Task | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
) -> int:
    filters = _filters(session, contributor, task, from_date, to_date)
    return ContributionRepository(session).sum_durations(**filters)


def get_contributions_count(
    session: Session,
    contributor: Collaborator | None = None,
    task: Task | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
) -> int:
    filters = _filters(session, contributor, task, from_date, to_date)
    return ContributionRepository(session).count(**filters)


def get_task_sums(
    session: Session,
    task: Task | None,
    from_date: date | None = None,
    to_date: date | None = None,
) -> TaskSums:
    """
    Budget, initially consumed, todo and consumed figures of a task.

    `task=None` aggregates the whole model. When `to_date` is given the todo
    is the remaining work *as of* that date: contributions logged after it
    had not been consumed yet, so they are added back.
    """
    check_interval(from_date, to_date)
    contributions = ContributionRepository(session)

    if task is not None and tree.is_leaf(session, task):
        scope = {"task_id": task.id}
        sums = TaskSums(
            budget_sum=task.budget,
            initially_consumed_sum=task.initially_consumed,
            todo_sum=task.todo,
        )
    else:
        prefix = task.full_path if task is not None else ""
        scope = {"task_prefix": prefix}
        budget, initially_consumed, todo = TaskRepository(session).sums(prefix)
        sums = TaskSums(
            budget_sum=budget,
            initially_consumed_sum=initially_consumed,
            todo_sum=todo,
        )

    sums.consumed_sum = contributions.sum_durations(
        from_date=from_date, to_date=to_date, **scope
    )
    sums.contributions_nb = contributions.count(
        from_date=from_date, to_date=to_date, **scope
    )
    if to_date is not None:
        sums.todo_sum += contributions.sum_after(to_date, **scope)
    return sums


def get_interval_contributions(
    session: Session,
    contributor: Collaborator | None,
    task: Task | None,
    from_date: date,
    to_date: date,
) -> IntervalContributions:
    """
    Day-by-day grid of a collaborator's contributions, one row per task.

    Rows are sorted by task full path; each row holds one slot per day of
    [from_date, to_date], None where nothing was logged.
    """
    if contributor is None:
        raise ContributorRequiredError()
    check_interval(from_date, to_date)
    days_count = count_days_between(from_date, to_date) + 1

    rows: dict[int, list[Contribution | None]] = {}
    for contribution in get_contributions(session, contributor, task, from_date, to_date):
        slots = rows.setdefault(contribution.task_id, [None] * days_count)
        slots[count_days_between(from_date, contribution.date)] = contribution

    result = IntervalContributions(from_date=from_date, to_date=to_date)
    for row_task in tree.sort_by_full_path(TaskRepository(session).get_many(rows)):
        result.task_contributions.append(
            TaskContributions(
                task=row_task,
                task_code_path=tree.get_task_code_path(session, row_task),
                contributions=rows[row_task.id],
            )
        )
    return result


def get_contributors(
    session: Session,
    task: Task | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
) -> list[Collaborator]:
    """Collaborators with at least one matching contribution, by login."""
    filters = _filters(session, None, task, from_date, to_date)
    return ContributionRepository(session).contributors(**filters)


def get_contributed_tasks(
    session: Session,
    contributor: Collaborator | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
) -> list[Task]:
    filters = _filters(session, contributor, None, from_date, to_date)
    task_ids = ContributionRepository(session).task_ids(**filters)
    return tree.sort_by_full_path(TaskRepository(session).get_many(task_ids))


def get_contributed_task_containers(
    session: Session,
    contributor: Collaborator | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
) -> list[Task]:
    """Distinct parents of the contributed tasks (root tasks have none)."""
    containers: dict[str, Task] = {}
    for task in get_contributed_tasks(session, contributor, from_date, to_date):
        if task.path and task.path not in containers:
            parent = tree.get_parent_task(session, task)
            if parent is not None:
                containers[task.path] = parent
    return tree.sort_by_full_path(containers.values())
