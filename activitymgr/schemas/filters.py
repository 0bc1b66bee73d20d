from enum import Enum

from pydantic import BaseModel


class TaskSearchField(str, Enum):
    NAME = "name"
    CODE = "code"


class TaskSearchCriteria(str, Enum):
    IS_EQUAL_TO = "is_equal_to"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    CONTAINS = "contains"


class TaskSearchFilter(BaseModel):
    """Search tasks by name or code."""
    field: TaskSearchField = TaskSearchField.NAME
    criteria: TaskSearchCriteria = TaskSearchCriteria.CONTAINS
    value: str


class CollaboratorOrder(str, Enum):
    """Sort keys accepted by the collaborator listings."""
    ID = "id"
    LOGIN = "login"
    FIRST_NAME = "first_name"
    LAST_NAME = "last_name"
    IS_ACTIVE = "is_active"
