from enum import Enum
from typing import Dict, List

class WorkspaceRoleEnum(str, Enum):
    CLIENT = "client"
    FREELANCER = "freelancer"

class PermissionEnum(str, Enum):
    # Task Permissions
    CREATE_TASK = "CREATE_TASK"
    EDIT_TASK = "EDIT_TASK"
    MOVE_TASK = "MOVE_TASK"
    DELETE_TASK = "DELETE_TASK"

    # File Permissions
    UPLOAD_FILE = "UPLOAD_FILE"
    DELETE_ANY_FILE = "DELETE_ANY_FILE"

    # Project Permissions
    COMPLETE_PROJECT = "COMPLETE_PROJECT"

    # Chat
    SEND_MESSAGE = "SEND_MESSAGE"

    # General View Permission
    VIEW_ONLY = "VIEW_ONLY"

# Client-side UX guard only, the backend enforces its own policy.
ROLE_PERMISSIONS: Dict[WorkspaceRoleEnum, List[PermissionEnum]] = {
    WorkspaceRoleEnum.CLIENT: [
        PermissionEnum.CREATE_TASK, PermissionEnum.EDIT_TASK, PermissionEnum.MOVE_TASK, PermissionEnum.DELETE_TASK,
        PermissionEnum.UPLOAD_FILE, PermissionEnum.DELETE_ANY_FILE,
        PermissionEnum.COMPLETE_PROJECT,
        PermissionEnum.SEND_MESSAGE,
        PermissionEnum.VIEW_ONLY,
    ],
    WorkspaceRoleEnum.FREELANCER: [
        PermissionEnum.MOVE_TASK,
        PermissionEnum.UPLOAD_FILE,
        PermissionEnum.SEND_MESSAGE,
        PermissionEnum.VIEW_ONLY,
    ],
}
