"""
ActivityMgr - task / contribution model manager.
"""

from activitymgr.database import Database
from activitymgr.exceptions import ActivityMgrException, ModelError, StorageError, XmlImportError
from activitymgr.models import Collaborator, Contribution, Duration, Task
from activitymgr.services.model_manager import ModelManager

__all__ = [
    "ActivityMgrException",
    "Collaborator",
    "Contribution",
    "Database",
    "Duration",
    "ModelError",
    "ModelManager",
    "StorageError",
    "Task",
    "XmlImportError",
]
