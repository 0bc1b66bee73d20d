"""
Model manager: the single entry point used by clients.

Every public method runs in exactly one storage transaction (commit on
success, rollback on any error). Structural tree mutations and the XML
import are additionally serialized by a per-manager lock, since they
read-then-write sibling numbers.

Entities handed back to callers are detached copies. Methods taking a
task first compare its path/number with the stored row and reject stale
copies; after a move, the caller's copies are updated in place.
"""

import threading
from contextlib import contextmanager
from datetime import date
from typing import BinaryIO, Iterator

from sqlmodel import Session

from activitymgr.config import Settings, get_settings
from activitymgr.database import Database
from activitymgr.exceptions import (
    CodeAlreadyInUseError,
    CollaboratorHasContributionsError,
    ContributionDeletionDetectedError,
    ContributionUpdateDetectedError,
    DuplicateDurationError,
    DuplicateLoginError,
    DurationInUseError,
    InvalidDurationError,
    InvalidTaskCodePathError,
    ModelError,
    NegativeDurationError,
    NonNullBudgetError,
    NonNullInitiallyConsumedError,
    NonNullTodoError,
    NullDurationError,
    TaskWithSubtasksCannotAcceptContributionsError,
    UnknownCollaboratorError,
    UnknownDurationError,
    UnknownTaskCodePathError,
    UnknownTaskError,
    XmlImportError,
)
from activitymgr.logging_config import get_logger
from activitymgr.models import Collaborator, Contribution, Duration, Task
from activitymgr.repositories import (
    CollaboratorRepository,
    ContributionRepository,
    DurationRepository,
    TaskRepository,
)
from activitymgr.schemas import (
    CollaboratorOrder,
    IntervalContributions,
    TaskSearchFilter,
    TaskSums,
)
from activitymgr.services import aggregation, integrity, tree, xml_codec

logger = get_logger(__name__)


def _copy_position(target: Task | None, source: Task | None) -> None:
    if target is not None and source is not None:
        target.path = source.path
        target.number = source.number


class ModelManager:
    """Transactional facade over the task tree and contribution engines."""

    def __init__(self, database: Database, settings: Settings | None = None):
        self.database = database
        self.settings = settings or get_settings()
        self._lock = threading.Lock()

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        try:
            with self.database.transaction() as session:
                yield session
        except (ModelError, XmlImportError) as e:
            logger.warning(f"Rejected [{e.error_code}]: {e.message}")
            raise

    # =========================================================================
    # Schema
    # =========================================================================

    def tables_exist(self) -> bool:
        return self.database.tables_exist()

    def create_tables(self) -> None:
        self.database.create_tables()

    def initialize(self) -> None:
        """Create the tables if needed, then the default durations on an empty model."""
        if not self.database.tables_exist():
            self.database.create_tables()
        with self._transaction() as session:
            durations = DurationRepository(session)
            if not durations.find_all():
                for value in self.settings.default_durations:
                    durations.add(Duration(id=value))
                logger.info(f"Created default durations {self.settings.default_durations}")

    # =========================================================================
    # Collaborators
    # =========================================================================

    def _create_collaborator(self, session: Session, collaborator: Collaborator) -> Collaborator:
        collaborators = CollaboratorRepository(session)
        if collaborators.login_exists(collaborator.login):
            raise DuplicateLoginError(collaborator.login)
        return collaborators.add(collaborator)

    def create_collaborator(self, collaborator: Collaborator) -> Collaborator:
        logger.info(f"create_collaborator({collaborator!r})")
        with self._transaction() as session:
            return self._create_collaborator(session, collaborator)

    def create_new_collaborator(self) -> Collaborator:
        """Create a collaborator with a free placeholder login (<new>, <new1>, ...)."""
        with self._transaction() as session:
            collaborators = CollaboratorRepository(session)
            prefix = self.settings.collaborator_login_prefix
            index = 0
            login = f"<{prefix}>"
            while collaborators.login_exists(login):
                index += 1
                login = f"<{prefix}{index}>"
            collaborator = Collaborator(
                login=login,
                first_name=f"<{self.settings.collaborator_first_name}>",
                last_name=f"<{self.settings.collaborator_last_name}>",
            )
            logger.info(f"create_new_collaborator() -> {login}")
            return collaborators.add(collaborator)

    def update_collaborator(self, collaborator: Collaborator) -> Collaborator:
        logger.info(f"update_collaborator({collaborator!r})")
        with self._transaction() as session:
            collaborators = CollaboratorRepository(session)
            stored = collaborators.get(collaborator.id)
            if stored is None:
                raise UnknownCollaboratorError(collaborator.id)
            if collaborators.login_exists(collaborator.login, exclude_id=collaborator.id):
                raise DuplicateLoginError(collaborator.login)
            for field, value in collaborator.model_dump(exclude={"id"}).items():
                setattr(stored, field, value)
            return collaborators.update(stored)

    def remove_collaborator(self, collaborator: Collaborator) -> None:
        logger.info(f"remove_collaborator({collaborator!r})")
        with self._transaction() as session:
            count = ContributionRepository(session).count_for_collaborator(collaborator.id)
            if count > 0:
                raise CollaboratorHasContributionsError(collaborator.login, count)
            collaborators = CollaboratorRepository(session)
            stored = collaborators.get(collaborator.id)
            if stored is None:
                raise UnknownCollaboratorError(collaborator.id)
            collaborators.delete(stored)

    def get_collaborator(self, collaborator_id: int) -> Collaborator | None:
        with self._transaction() as session:
            return CollaboratorRepository(session).get(collaborator_id)

    def get_collaborator_by_login(self, login: str) -> Collaborator | None:
        with self._transaction() as session:
            return CollaboratorRepository(session).get_by_login(login)

    def get_collaborators(
        self,
        order_by: CollaboratorOrder = CollaboratorOrder.LOGIN,
        ascending: bool = True,
    ) -> list[Collaborator]:
        with self._transaction() as session:
            return CollaboratorRepository(session).find_all(order_by, ascending)

    def get_active_collaborators(
        self,
        order_by: CollaboratorOrder = CollaboratorOrder.LOGIN,
        ascending: bool = True,
    ) -> list[Collaborator]:
        with self._transaction() as session:
            return CollaboratorRepository(session).find_all(order_by, ascending, active_only=True)

    def get_contributors(
        self,
        task: Task | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> list[Collaborator]:
        with self._transaction() as session:
            stored = tree.refresh_task(session, task) if task is not None else None
            return aggregation.get_contributors(session, stored, from_date, to_date)

    # =========================================================================
    # Durations
    # =========================================================================

    def _create_duration(self, session: Session, duration: Duration) -> Duration:
        durations = DurationRepository(session)
        if duration.id is not None and durations.exists(duration.id):
            raise DuplicateDurationError(duration.id)
        if not duration.id:
            raise NullDurationError()
        if duration.id < 0:
            raise NegativeDurationError(duration.id)
        return durations.add(duration)

    def create_duration(self, duration: Duration) -> Duration:
        logger.info(f"create_duration({duration!r})")
        with self._transaction() as session:
            return self._create_duration(session, duration)

    def _remove_duration(self, session: Session, duration: Duration) -> None:
        durations = DurationRepository(session)
        stored = durations.get(duration.id)
        if stored is None:
            raise UnknownDurationError(duration.id)
        if ContributionRepository(session).count_for_duration(duration.id) > 0:
            raise DurationInUseError(duration.id)
        durations.delete(stored)

    def remove_duration(self, duration: Duration) -> None:
        logger.info(f"remove_duration({duration!r})")
        with self._transaction() as session:
            self._remove_duration(session, duration)

    def update_duration(self, duration: Duration, new_duration: Duration | None = None) -> Duration:
        """
        Update a duration.

        With a single argument only the active flag is saved. With
        `new_duration`, the value itself changes: the old duration is
        removed (it must be unused) and the new one created.
        """
        logger.info(f"update_duration({duration!r}, {new_duration!r})")
        with self._transaction() as session:
            if new_duration is not None and new_duration.id != duration.id:
                self._remove_duration(session, duration)
                return self._create_duration(session, new_duration)

            target = new_duration if new_duration is not None else duration
            durations = DurationRepository(session)
            stored = durations.get(target.id)
            if stored is None:
                raise UnknownDurationError(target.id)
            stored.is_active = target.is_active
            return durations.update(stored)

    def get_durations(self) -> list[Duration]:
        with self._transaction() as session:
            return DurationRepository(session).find_all()

    def get_active_durations(self) -> list[Duration]:
        with self._transaction() as session:
            return DurationRepository(session).find_all(active_only=True)

    def get_duration(self, duration_id: int) -> Duration | None:
        with self._transaction() as session:
            return DurationRepository(session).get(duration_id)

    def duration_exists(self, duration: Duration) -> bool:
        with self._transaction() as session:
            return DurationRepository(session).exists(duration.id)

    # =========================================================================
    # Tasks
    # =========================================================================

    def _create_task(self, session: Session, parent: Task | None, task: Task) -> Task:
        stored_parent = tree.refresh_task(session, parent) if parent is not None else None
        return tree.create_task(session, stored_parent, task)

    def create_task(self, parent: Task | None, task: Task) -> Task:
        """Append `task` under `parent` (at root level when None)."""
        logger.info(f"create_task({parent!r}, {task!r})")
        with self._lock, self._transaction() as session:
            return self._create_task(session, parent, task)

    def create_new_task(self, parent: Task | None) -> Task:
        """Create a task with a free placeholder code (<N>, <N1>, ...)."""
        with self._lock, self._transaction() as session:
            stored_parent = tree.refresh_task(session, parent) if parent is not None else None
            path = stored_parent.full_path if stored_parent is not None else ""
            tasks = TaskRepository(session)
            prefix = self.settings.task_code_prefix
            index = 0
            code = f"<{prefix}>"
            while tasks.code_exists(path, code):
                index += 1
                code = f"<{prefix}{index}>"
            task = Task(code=code, name=f"<{self.settings.task_name}>")
            logger.info(f"create_new_task({parent!r}) -> {code}")
            return tree.create_task(session, stored_parent, task)

    def update_task(self, task: Task) -> Task:
        """Save every field but the position (path / number)."""
        logger.info(f"update_task({task!r})")
        with self._transaction() as session:
            stored = tree.refresh_task(session, task)
            tasks = TaskRepository(session)
            if tasks.code_exists(stored.path, task.code, exclude_id=stored.id):
                raise CodeAlreadyInUseError(task.code)
            if not tree.is_leaf(session, stored):
                # Containers carry no figures of their own
                if task.budget != 0:
                    raise NonNullBudgetError(task.name)
                if task.initially_consumed != 0:
                    raise NonNullInitiallyConsumedError(task.name)
                if task.todo != 0:
                    raise NonNullTodoError(task.name)
            for field, value in task.model_dump(exclude={"id", "path", "number"}).items():
                setattr(stored, field, value)
            return tasks.update(stored)

    def move_task(self, task: Task, dest_parent: Task | None) -> None:
        logger.info(f"move_task({task!r}, {dest_parent!r})")
        with self._lock, self._transaction() as session:
            stored = tree.refresh_task(session, task)
            stored_dest = tree.refresh_task(session, dest_parent) if dest_parent is not None else None
            tree.move_task(session, stored, stored_dest)
        _copy_position(task, stored)
        _copy_position(dest_parent, stored_dest)

    def move_up_task(self, task: Task) -> None:
        logger.info(f"move_up_task({task!r})")
        with self._lock, self._transaction() as session:
            stored = tree.refresh_task(session, task)
            tree.move_up_task(session, stored)
        _copy_position(task, stored)

    def move_down_task(self, task: Task) -> None:
        logger.info(f"move_down_task({task!r})")
        with self._lock, self._transaction() as session:
            stored = tree.refresh_task(session, task)
            tree.move_down_task(session, stored)
        _copy_position(task, stored)

    def move_task_up_or_down(self, task: Task, new_number: int) -> None:
        logger.info(f"move_task_up_or_down({task!r}, {new_number})")
        with self._lock, self._transaction() as session:
            stored = tree.refresh_task(session, task)
            tree.move_task_up_or_down(session, stored, new_number)
        _copy_position(task, stored)

    def remove_task(self, task: Task) -> None:
        logger.info(f"remove_task({task!r})")
        with self._lock, self._transaction() as session:
            stored = tree.refresh_task(session, task)
            tree.remove_task(session, stored)

    def get_task(self, task_id: int) -> Task | None:
        with self._transaction() as session:
            return TaskRepository(session).get(task_id)

    def get_task_by_path_and_code(self, path: str, code: str) -> Task | None:
        with self._transaction() as session:
            return TaskRepository(session).get_by_path_and_code(path, code)

    def get_parent_task(self, task: Task) -> Task | None:
        with self._transaction() as session:
            return tree.get_parent_task(session, tree.refresh_task(session, task))

    def get_sub_tasks(self, parent: Task | None) -> list[Task]:
        with self._transaction() as session:
            stored = tree.refresh_task(session, parent) if parent is not None else None
            return tree.get_sub_tasks(session, stored)

    def get_sub_tasks_count(self, task_id: int) -> int:
        with self._transaction() as session:
            stored = TaskRepository(session).get(task_id)
            if stored is None:
                raise UnknownTaskError(task_id)
            return tree.get_sub_tasks_count(session, stored)

    def is_leaf(self, task_id: int) -> bool:
        return self.get_sub_tasks_count(task_id) == 0

    def get_root_tasks_count(self) -> int:
        with self._transaction() as session:
            return tree.get_sub_tasks_count(session, None)

    def get_tasks(self, search_filter: TaskSearchFilter) -> list[Task]:
        with self._transaction() as session:
            return tree.sort_by_full_path(TaskRepository(session).search(search_filter))

    def _get_task_by_code_path(self, session: Session, code_path: str) -> Task | None:
        code_path = code_path.strip()
        if not code_path.startswith("/"):
            raise InvalidTaskCodePathError(code_path)
        tasks = TaskRepository(session)
        task = None
        for code in code_path[1:].split("/") if len(code_path) > 1 else []:
            task = tasks.get_by_path_and_code(task.full_path if task is not None else "", code)
            if task is None:
                raise UnknownTaskCodePathError(code_path)
        return task

    def get_task_by_code_path(self, code_path: str) -> Task | None:
        """Resolve a '/'-joined code path ('/PRJ/SPEC'); '/' alone gives None."""
        with self._transaction() as session:
            return self._get_task_by_code_path(session, code_path)

    def get_tasks_by_code_path(self, code_paths: list[str]) -> list[Task]:
        with self._transaction() as session:
            result = []
            for code_path in code_paths:
                task = self._get_task_by_code_path(session, code_path)
                if task is None:
                    raise UnknownTaskCodePathError(code_path)
                result.append(task)
            return result

    def get_task_code_path(self, task: Task) -> str:
        with self._transaction() as session:
            stored = tree.refresh_task(session, task)
            return tree.get_task_code_path(session, stored)

    def get_contributed_tasks(
        self,
        contributor: Collaborator | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> list[Task]:
        with self._transaction() as session:
            return aggregation.get_contributed_tasks(session, contributor, from_date, to_date)

    def get_contributed_task_containers(
        self,
        contributor: Collaborator | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> list[Task]:
        with self._transaction() as session:
            return aggregation.get_contributed_task_containers(
                session, contributor, from_date, to_date
            )

    def get_task_sums(
        self,
        task: Task | None,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> TaskSums:
        with self._transaction() as session:
            stored = tree.refresh_task(session, task) if task is not None else None
            return aggregation.get_task_sums(session, stored, from_date, to_date)

    def check_model_integrity(self) -> list[str]:
        with self._transaction() as session:
            problems = integrity.check_model_integrity(session)
        for problem in problems:
            logger.warning(f"Integrity: {problem}")
        return problems

    # =========================================================================
    # Contributions
    # =========================================================================

    def _create_contribution(
        self, session: Session, contribution: Contribution, update_todo: bool
    ) -> Contribution:
        task = TaskRepository(session).get(contribution.task_id)
        if task is None:
            raise UnknownTaskError(contribution.task_id)
        if not tree.is_leaf(session, task):
            raise TaskWithSubtasksCannotAcceptContributionsError(task.code)
        if not DurationRepository(session).exists(contribution.duration_id):
            raise InvalidDurationError(contribution.duration_id)
        if CollaboratorRepository(session).get(contribution.contributor_id) is None:
            raise UnknownCollaboratorError(contribution.contributor_id)

        ContributionRepository(session).add(contribution)
        if update_todo:
            task.todo = max(task.todo - contribution.duration_id, 0)
            TaskRepository(session).update(task)
        return contribution

    def create_contribution(self, contribution: Contribution, update_todo: bool = True) -> Contribution:
        """Log time on a leaf task, optionally consuming it from the task's todo."""
        logger.info(f"create_contribution({contribution!r}, update_todo={update_todo})")
        with self._transaction() as session:
            return self._create_contribution(session, contribution, update_todo)

    def update_contribution(self, contribution: Contribution, update_todo: bool = True) -> Contribution:
        logger.info(f"update_contribution({contribution!r}, update_todo={update_todo})")
        with self._transaction() as session:
            if not DurationRepository(session).exists(contribution.duration_id):
                raise InvalidDurationError(contribution.duration_id)
            contributions = ContributionRepository(session)
            stored = contributions.get_like(contribution)
            if stored is None:
                raise ContributionDeletionDetectedError()

            old_duration = stored.duration_id
            stored.duration_id = contribution.duration_id
            contributions.update(stored)
            if update_todo:
                tasks = TaskRepository(session)
                task = tasks.get(stored.task_id)
                task.todo = max(task.todo + old_duration - contribution.duration_id, 0)
                tasks.update(task)
            return stored

    def remove_contribution(self, contribution: Contribution, update_todo: bool = True) -> None:
        """
        Delete a contribution, optionally giving its duration back to the task's todo.

        When the todo is adjusted the stored duration must still match the
        caller's, otherwise the todo would be credited a wrong amount.
        """
        logger.info(f"remove_contribution({contribution!r}, update_todo={update_todo})")
        with self._transaction() as session:
            contributions = ContributionRepository(session)
            stored = contributions.get_like(contribution)
            if stored is None:
                return
            if update_todo and stored.duration_id != contribution.duration_id:
                raise ContributionUpdateDetectedError()
            contributions.delete(stored)
            if update_todo:
                tasks = TaskRepository(session)
                task = tasks.get(stored.task_id)
                task.todo += stored.duration_id
                tasks.update(task)

    def remove_contributions(self, contributions: list[Contribution]) -> None:
        """Bulk delete, todos left untouched."""
        logger.info(f"remove_contributions({len(contributions)} contribution(s))")
        with self._transaction() as session:
            repository = ContributionRepository(session)
            for contribution in contributions:
                stored = repository.get_like(contribution)
                if stored is not None:
                    repository.delete(stored)

    def change_contribution_task(
        self, contributions: list[Contribution], new_task: Task
    ) -> list[Contribution]:
        """Re-attach contributions to another leaf task (delete + insert each)."""
        logger.info(f"change_contribution_task({len(contributions)} contribution(s), {new_task!r})")
        with self._transaction() as session:
            stored_task = TaskRepository(session).get(new_task.id)
            if stored_task is None:
                raise UnknownTaskError(new_task.id)
            if not tree.is_leaf(session, stored_task):
                raise TaskWithSubtasksCannotAcceptContributionsError(stored_task.code)

            repository = ContributionRepository(session)
            for contribution in contributions:
                stored = repository.get_like(contribution)
                if stored is not None:
                    repository.delete(stored)
                contribution.task_id = stored_task.id
                repository.add(
                    Contribution(
                        contributor_id=contribution.contributor_id,
                        task_id=stored_task.id,
                        year=contribution.year,
                        month=contribution.month,
                        day=contribution.day,
                        duration_id=contribution.duration_id,
                    )
                )
            return contributions

    def get_contributions(
        self,
        contributor: Collaborator | None = None,
        task: Task | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> list[Contribution]:
        with self._transaction() as session:
            stored = tree.refresh_task(session, task) if task is not None else None
            return aggregation.get_contributions(session, contributor, stored, from_date, to_date)

    def get_contributions_sum(
        self,
        contributor: Collaborator | None = None,
        task: Task | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> int:
        with self._transaction() as session:
            stored = tree.refresh_task(session, task) if task is not None else None
            return aggregation.get_contributions_sum(
                session, contributor, stored, from_date, to_date
            )

    def get_contributions_count(
        self,
        contributor: Collaborator | None = None,
        task: Task | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> int:
        with self._transaction() as session:
            stored = tree.refresh_task(session, task) if task is not None else None
            return aggregation.get_contributions_count(
                session, contributor, stored, from_date, to_date
            )

    def get_interval_contributions(
        self,
        contributor: Collaborator | None,
        task: Task | None,
        from_date: date,
        to_date: date,
    ) -> IntervalContributions:
        with self._transaction() as session:
            stored = tree.refresh_task(session, task) if task is not None else None
            return aggregation.get_interval_contributions(
                session, contributor, stored, from_date, to_date
            )

    # =========================================================================
    # XML
    # =========================================================================

    def export_to_xml(self, out: BinaryIO) -> None:
        logger.info("export_to_xml()")
        with self._transaction() as session:
            xml_codec.export_model(session, out)

    def import_from_xml(self, source: BinaryIO) -> None:
        """Load a whole model document; all or nothing."""
        logger.info("import_from_xml()")
        with self._lock, self._transaction() as session:
            xml_codec.import_model(source, _ImportDelegate(self, session))


class _ImportDelegate:
    """Creation / lookup calls of the XML importer, bound to one transaction."""

    def __init__(self, manager: ModelManager, session: Session):
        self.manager = manager
        self.session = session

    def create_duration(self, duration: Duration) -> Duration:
        return self.manager._create_duration(self.session, duration)

    def create_collaborator(self, collaborator: Collaborator) -> Collaborator:
        return self.manager._create_collaborator(self.session, collaborator)

    def create_task(self, parent: Task | None, task: Task) -> Task:
        return tree.create_task(self.session, parent, task)

    def create_contribution(self, contribution: Contribution) -> Contribution:
        # Figures of the document are authoritative: no todo adjustment
        return self.manager._create_contribution(self.session, contribution, update_todo=False)

    def get_task_by_code_path(self, code_path: str) -> Task | None:
        return self.manager._get_task_by_code_path(self.session, code_path)

    def get_collaborator(self, login: str) -> Collaborator | None:
        return CollaboratorRepository(self.session).get_by_login(login)
