"""
Structured exceptions for ActivityMgr.

Two families are surfaced by the model manager:
- ModelError: a business rule was violated (expected, caller-recoverable)
- StorageError: the storage backend failed (opaque, logged, never retried)

Each ModelError subclass carries a stable error_code and the values the
caller needs to act on (login, code, count...).
"""

from typing import Any, Dict, List, Optional


# =============================================================================
# Base exceptions
# =============================================================================

class ActivityMgrException(Exception):
    """Base exception for all ActivityMgr errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "internal_error",
        details: Optional[List[Dict[str, Any]]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details
        super().__init__(message)


class ModelError(ActivityMgrException):
    """A model integrity rule rejected the operation."""

    def __init__(self, message: str, error_code: str = "model_violation", **kwargs):
        super().__init__(message=message, error_code=error_code, **kwargs)


class StorageError(ActivityMgrException):
    """Technical failure of the storage backend."""

    def __init__(self, message: str = "Storage operation failed"):
        super().__init__(message=message, error_code="storage_error")


class XmlImportError(ActivityMgrException):
    """The XML document is malformed or does not match the model DTD."""

    def __init__(self, message: str, line: Optional[int] = None):
        if line is not None:
            message = f"{message} (line {line})"
        super().__init__(message=message, error_code="xml_import_error")
        self.line = line


# =============================================================================
# Lookup / staleness
# =============================================================================

class UnknownTaskError(ModelError):
    def __init__(self, task_id: Any):
        super().__init__(f"Task with ID {task_id} not found", "unknown_task")
        self.task_id = task_id


class UnknownCollaboratorError(ModelError):
    def __init__(self, collaborator_id: Any):
        super().__init__(
            f"Collaborator with ID {collaborator_id} not found", "unknown_collaborator"
        )
        self.collaborator_id = collaborator_id


class TaskPathUpdateDetectedError(ModelError):
    """The in-memory task path no longer matches the stored one."""

    def __init__(self, task_id: int):
        super().__init__(
            "Task path has been modified since the task was loaded; reload it and retry",
            "task_path_update_detected",
        )
        self.task_id = task_id


class TaskNumberUpdateDetectedError(ModelError):
    """The in-memory task number no longer matches the stored one."""

    def __init__(self, task_id: int):
        super().__init__(
            "Task number has been modified since the task was loaded; reload it and retry",
            "task_number_update_detected",
        )
        self.task_id = task_id


class InvalidTaskPathError(ModelError):
    def __init__(self, path: str, reason: str):
        super().__init__(f"Invalid task path '{path}': {reason}", "invalid_task_path")
        self.path = path


# =============================================================================
# Tree structure
# =============================================================================

class TaskInUseError(ModelError):
    """A task with contributions cannot become a container."""

    def __init__(self, task_name: str, contributions_count: int):
        super().__init__(
            f"Task '{task_name}' is used by {contributions_count} contribution(s) "
            "and cannot accept sub tasks",
            "task_in_use",
        )
        self.contributions_count = contributions_count


class NonNullBudgetError(ModelError):
    def __init__(self, task_name: str):
        super().__init__(
            f"Task '{task_name}' has a non null budget and cannot accept sub tasks",
            "non_null_budget",
        )


class NonNullInitiallyConsumedError(ModelError):
    def __init__(self, task_name: str):
        super().__init__(
            f"Task '{task_name}' has a non null initially consumed and cannot accept sub tasks",
            "non_null_initially_consumed",
        )


class NonNullTodoError(ModelError):
    def __init__(self, task_name: str):
        super().__init__(
            f"Task '{task_name}' has a non null estimated time to complete "
            "and cannot accept sub tasks",
            "non_null_todo",
        )


class CodeAlreadyInUseError(ModelError):
    def __init__(self, code: str):
        super().__init__(
            f"Task code '{code}' is already in use by a sibling task", "code_already_in_use"
        )
        self.code = code


class CodeExistsAtDestinationError(ModelError):
    def __init__(self, code: str):
        super().__init__(
            f"A task with code '{code}' already exists at the destination",
            "code_exists_at_destination",
        )
        self.code = code


class CannotMoveUpError(ModelError):
    def __init__(self, code: str):
        super().__init__(f"Task '{code}' is already the first one", "cannot_move_up")


class CannotMoveDownError(ModelError):
    def __init__(self, code: str):
        super().__init__(f"Task '{code}' is already the last one", "cannot_move_down")


class CannotMoveUnderItselfError(ModelError):
    def __init__(self, code: str):
        super().__init__(
            f"Task '{code}' cannot be moved under itself or one of its sub tasks",
            "cannot_move_under_itself",
        )


class InvalidTaskNumberError(ModelError):
    def __init__(self, number: int, reason: str):
        super().__init__(f"Invalid task number {number}: {reason}", "invalid_task_number")
        self.number = number


class TooManySubtasksError(ModelError):
    def __init__(self, path: str, limit: int):
        super().__init__(
            f"Cannot create more than {limit} tasks under path '{path}'", "too_many_subtasks"
        )


class TaskHasContributionsError(ModelError):
    def __init__(self, code: str, contributions_count: int):
        super().__init__(
            f"Task '{code}' (or one of its sub tasks) has {contributions_count} "
            "contribution(s) and cannot be removed",
            "task_has_contributions",
        )
        self.contributions_count = contributions_count


class TaskWithSubtasksCannotAcceptContributionsError(ModelError):
    def __init__(self, code: str):
        super().__init__(
            f"Task '{code}' has sub tasks and cannot accept contributions",
            "task_with_subtasks_cannot_accept_contributions",
        )


class InvalidTaskCodePathError(ModelError):
    def __init__(self, code_path: str):
        super().__init__(
            f"Invalid task code path '{code_path}' (must start with '/')",
            "invalid_task_code_path",
        )


class UnknownTaskCodePathError(ModelError):
    def __init__(self, code_path: str):
        super().__init__(f"Unknown task code path '{code_path}'", "unknown_task_code_path")
        self.code_path = code_path


# =============================================================================
# Collaborators / durations / contributions
# =============================================================================

class DuplicateLoginError(ModelError):
    def __init__(self, login: str):
        super().__init__(f"Login '{login}' is already in use", "duplicate_login")
        self.login = login


class CollaboratorHasContributionsError(ModelError):
    def __init__(self, login: str, contributions_count: int):
        super().__init__(
            f"Collaborator '{login}' has {contributions_count} contribution(s) "
            "and cannot be removed",
            "collaborator_has_contributions",
        )
        self.contributions_count = contributions_count


class DuplicateDurationError(ModelError):
    def __init__(self, duration_id: int):
        super().__init__(f"Duration {duration_id} already exists", "duplicate_duration")


class NullDurationError(ModelError):
    def __init__(self):
        super().__init__("A duration cannot be null", "null_duration")


class NegativeDurationError(ModelError):
    def __init__(self, duration_id: int):
        super().__init__(f"Duration {duration_id} must be positive", "negative_duration")


class InvalidDurationError(ModelError):
    """A contribution references a duration that does not exist."""

    def __init__(self, duration_id: int):
        super().__init__(f"Invalid duration {duration_id}", "invalid_duration")


class UnknownDurationError(ModelError):
    def __init__(self, duration_id: int):
        super().__init__(f"Duration {duration_id} does not exist", "unknown_duration")


class DurationInUseError(ModelError):
    def __init__(self, duration_id: int):
        super().__init__(
            f"Duration {duration_id} is used by contributions and cannot be removed",
            "duration_in_use",
        )


class ContributionUpdateDetectedError(ModelError):
    def __init__(self):
        super().__init__(
            "Contribution has been modified since it was loaded; reload it and retry",
            "contribution_update_detected",
        )


class ContributionDeletionDetectedError(ModelError):
    def __init__(self):
        super().__init__(
            "Contribution has been deleted since it was loaded; reload it and retry",
            "contribution_deletion_detected",
        )


class ContributorRequiredError(ModelError):
    def __init__(self):
        super().__init__("A contributor must be specified", "contributor_required")


class InvalidIntervalError(ModelError):
    def __init__(self, from_date: Any, to_date: Any):
        super().__init__(
            f"From date {from_date} must be before to date {to_date}", "invalid_interval"
        )
