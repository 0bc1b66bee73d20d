"""
Task tree engine.

Keeps the positional encoding of the task forest consistent while tasks
are created, reordered, moved and removed:
- Sibling numbers under every parent stay dense (1..N)
- A child's path always equals its parent's full path
- A task is never moved below itself

Every function works on tasks attached to the given session and flushes
each update immediately; the (path, number) unique constraint relies on
the statements reaching the database in algorithm order.
"""

from sqlmodel import Session

from activitymgr.exceptions import (
    CannotMoveDownError,
    CannotMoveUnderItselfError,
    CannotMoveUpError,
    CodeAlreadyInUseError,
    CodeExistsAtDestinationError,
    InvalidTaskNumberError,
    NonNullBudgetError,
    NonNullInitiallyConsumedError,
    NonNullTodoError,
    TaskHasContributionsError,
    TaskInUseError,
    TaskNumberUpdateDetectedError,
    TaskPathUpdateDetectedError,
    TooManySubtasksError,
    UnknownTaskError,
)
from activitymgr.logging_config import get_logger
from activitymgr.models import Task
from activitymgr.repositories import ContributionRepository, TaskRepository
from activitymgr.services.task_path import MAX_NUMBER, TaskPath

logger = get_logger(__name__)

# Temporary number used while two siblings swap positions
PLACEHOLDER_NUMBER = 0


def sort_by_full_path(tasks) -> list[Task]:
    """Depth-first tree order (string comparison of the full paths)."""
    return sorted(tasks, key=lambda task: task.full_path)


def refresh_task(session: Session, task: Task) -> Task:
    """
    Return the stored row of `task`, rejecting stale in-memory copies.

    Raises:
        UnknownTaskError: the task no longer exists
        TaskPathUpdateDetectedError / TaskNumberUpdateDetectedError: the
            caller's path or number differs from the stored one
    """
    stored = TaskRepository(session).get(task.id) if task.id is not None else None
    if stored is None:
        raise UnknownTaskError(task.id)
    if stored is task:
        return stored
    if stored.path != task.path:
        logger.error(
            f"Stale task {task.id}: in-memory path='{task.path}' stored path='{stored.path}'"
        )
        raise TaskPathUpdateDetectedError(task.id)
    if stored.number != task.number:
        logger.error(
            f"Stale task {task.id}: in-memory number={task.number} stored number={stored.number}"
        )
        raise TaskNumberUpdateDetectedError(task.id)
    return stored


def get_sub_tasks(session: Session, parent: Task | None) -> list[Task]:
    """Direct children ordered by number (root tasks when parent is None)."""
    path = parent.full_path if parent is not None else ""
    return TaskRepository(session).children(path)


def get_sub_tasks_count(session: Session, task: Task | None) -> int:
    path = task.full_path if task is not None else ""
    return TaskRepository(session).children_count(path)


def is_leaf(session: Session, task: Task) -> bool:
    return get_sub_tasks_count(session, task) == 0


def get_parent_task(session: Session, task: Task) -> Task | None:
    if task.path == "":
        return None
    parent_path = TaskPath(task.path)
    return TaskRepository(session).get_by_path_and_number(
        str(parent_path.parent), parent_path.number
    )


def get_task_code_path(session: Session, task: Task) -> str:
    """'/'-joined codes from the root down to `task`, e.g. '/PRJ/SPEC'."""
    tasks = TaskRepository(session)
    codes = [task.code]
    path = TaskPath(task.path)
    while not path.is_root:
        ancestor = tasks.get_by_path_and_number(str(path.parent), path.number)
        if ancestor is None:
            raise UnknownTaskError(f"path={path}")
        codes.append(ancestor.code)
        path = path.parent
    return "/" + "/".join(reversed(codes))


def check_accepts_subtasks(session: Session, task: Task) -> None:
    """
    Reject a new child under `task` when it is a leaf still carrying data.

    A task that already has children accepts more unconditionally. A leaf
    accepts its first child only if it has no contributions and zero
    budget, initially consumed and todo.
    """
    stored = TaskRepository(session).get(task.id)
    if stored is None:
        raise UnknownTaskError(task.id)
    if not is_leaf(session, stored):
        return

    contributions_count = ContributionRepository(session).count(task_id=stored.id)
    if contributions_count > 0:
        raise TaskInUseError(stored.name, contributions_count)
    if stored.budget != 0:
        raise NonNullBudgetError(stored.name)
    if stored.initially_consumed != 0:
        raise NonNullInitiallyConsumedError(stored.name)
    if stored.todo != 0:
        raise NonNullTodoError(stored.name)


def next_number(session: Session, path: str) -> int:
    number = TaskRepository(session).max_number(path) + 1
    if number > MAX_NUMBER:
        raise TooManySubtasksError(path, MAX_NUMBER)
    return number


def create_task(session: Session, parent: Task | None, task: Task) -> Task:
    """Append `task` as the last child of `parent` (a root task when None)."""
    if parent is not None:
        check_accepts_subtasks(session, parent)

    path = parent.full_path if parent is not None else ""
    tasks = TaskRepository(session)
    if tasks.code_exists(path, task.code):
        raise CodeAlreadyInUseError(task.code)

    task.path = path
    task.number = next_number(session, path)
    tasks.add(task)
    logger.debug(f"Created task {task.id} at {task.full_path}")
    return task


def change_tasks_paths(
    session: Session, tasks: list[Task], old_path_length: int, new_path: str
) -> None:
    """
    Replace the first `old_path_length` characters of every path below
    `tasks` (included) with `new_path`.

    Children are fetched through the current, not yet rewritten, full
    path of their parent, so the recursion happens before the update.
    """
    repository = TaskRepository(session)
    for task in tasks:
        sub_tasks = repository.children(task.full_path)
        if sub_tasks:
            change_tasks_paths(session, sub_tasks, old_path_length, new_path)
        new_task_path = str(TaskPath(task.path).rebase(old_path_length, new_path))
        logger.debug(f"Task {task.id}: path '{task.path}' -> '{new_task_path}'")
        task.path = new_task_path
        repository.update(task)


def _renumber(session: Session, task: Task, number: int) -> None:
    """Give `task` a new number and carry its subtree along."""
    old_full_path = task.full_path
    sub_tasks = TaskRepository(session).children(old_full_path)
    task.number = number
    TaskRepository(session).update(task)
    if sub_tasks:
        change_tasks_paths(session, sub_tasks, len(old_full_path), task.full_path)


def rebuild_subtasks_numbers(session: Session, parent: Task | None) -> None:
    """Close the gaps left in the children numbering of `parent`."""
    for index, child in enumerate(get_sub_tasks(session, parent)):
        if child.number != index + 1:
            _renumber(session, child, index + 1)


def toggle_tasks(session: Session, task1: Task, task2: Task) -> None:
    """
    Swap the numbers of two siblings.

    Three steps through a placeholder so that (path, number) stays unique
    at every statement.
    """
    number1, number2 = task1.number, task2.number
    logger.debug(f"Swapping tasks {task1.id} (#{number1}) and {task2.id} (#{number2})")
    _renumber(session, task1, PLACEHOLDER_NUMBER)
    _renumber(session, task2, number1)
    _renumber(session, task1, number2)


def move_up_task(session: Session, task: Task) -> None:
    previous = TaskRepository(session).get_by_path_and_number(task.path, task.number - 1)
    if previous is None:
        raise CannotMoveUpError(task.code)
    toggle_tasks(session, task, previous)


def move_down_task(session: Session, task: Task) -> None:
    following = TaskRepository(session).get_by_path_and_number(task.path, task.number + 1)
    if following is None:
        raise CannotMoveDownError(task.code)
    toggle_tasks(session, task, following)


def move_task_up_or_down(session: Session, task: Task, new_number: int) -> None:
    """Walk `task` to position `new_number`, one sibling swap at a time."""
    siblings_count = TaskRepository(session).children_count(task.path)
    if new_number < 1 or new_number > siblings_count:
        raise InvalidTaskNumberError(new_number, f"must be between 1 and {siblings_count}")
    if new_number == task.number:
        raise InvalidTaskNumberError(new_number, "the task already has this number")

    while task.number != new_number:
        if new_number < task.number:
            move_up_task(session, task)
        else:
            move_down_task(session, task)


def move_task(session: Session, task: Task, dest_parent: Task | None) -> None:
    """
    Re-parent `task` (and its subtree) as the last child of `dest_parent`.

    Both tasks must be attached, up-to-date rows (see `refresh_task`).
    """
    tasks = TaskRepository(session)

    # No move below itself: walk from the destination up to the root
    ancestor = dest_parent
    while ancestor is not None:
        if ancestor.id == task.id:
            raise CannotMoveUnderItselfError(task.code)
        ancestor = get_parent_task(session, ancestor)

    if dest_parent is not None:
        check_accepts_subtasks(session, dest_parent)

    dest_path = dest_parent.full_path if dest_parent is not None else ""
    if tasks.code_exists(dest_path, task.code, exclude_id=task.id):
        raise CodeExistsAtDestinationError(task.code)

    old_full_path = task.full_path
    source_parent = get_parent_task(session, task)
    sub_tasks = tasks.children(old_full_path)

    task.number = next_number(session, dest_path)
    task.path = dest_path
    tasks.update(task)
    logger.debug(f"Task {task.id} moved from {old_full_path} to {task.full_path}")

    if sub_tasks:
        change_tasks_paths(session, sub_tasks, len(old_full_path), task.full_path)

    rebuild_subtasks_numbers(session, source_parent)


def remove_task(session: Session, task: Task) -> None:
    """Delete `task` with its whole subtree, then renumber its siblings."""
    contributions_count = ContributionRepository(session).count_for_subtree(
        task.id, task.full_path
    )
    if contributions_count > 0:
        raise TaskHasContributionsError(task.code, contributions_count)

    tasks = TaskRepository(session)
    parent = get_parent_task(session, task)
    descendants = tasks.descendants(task.full_path)
    for descendant in descendants:
        session.delete(descendant)
    tasks.delete(task)
    logger.debug(f"Removed task {task.id} and {len(descendants)} descendant(s)")

    rebuild_subtasks_numbers(session, parent)
