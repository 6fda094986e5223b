from typing import Optional, Set

from workspace_engine.models.file_models import FileAttachmentPublic
from workspace_engine.models.project_models import ProjectPublic
from workspace_engine.models.role_permission_models import PermissionEnum, ROLE_PERMISSIONS, WorkspaceRoleEnum
from workspace_engine.models.session_models import Session
from workspace_engine.utils.errors import PermissionDeniedError


def resolve_workspace_role(project: Optional[ProjectPublic], session: Session) -> Optional[WorkspaceRoleEnum]:
    """Role of the session user inside a project workspace.

    The project's client is `client`, its assigned talent is `freelancer`;
    anybody else has no workspace role.
    """
    username = session.current_username
    if project is None or not username:
        return None
    if username == project.client_username:
        return WorkspaceRoleEnum.CLIENT
    if project.assigned_talent_username and username == project.assigned_talent_username:
        return WorkspaceRoleEnum.FREELANCER
    return None


def permissions_for(role: Optional[WorkspaceRoleEnum]) -> Set[PermissionEnum]:
    if role is None:
        return {PermissionEnum.VIEW_ONLY}
    return set(ROLE_PERMISSIONS.get(role, []))


def has_permission(role: Optional[WorkspaceRoleEnum], permission: PermissionEnum) -> bool:
    return permission in permissions_for(role)


def can_delete_file(file: FileAttachmentPublic, role: Optional[WorkspaceRoleEnum], username: Optional[str]) -> bool:
    if has_permission(role, PermissionEnum.DELETE_ANY_FILE):
        return True
    return bool(username) and file.uploader_username == username


def ensure_can_delete_file(file: FileAttachmentPublic, role: Optional[WorkspaceRoleEnum], username: Optional[str]) -> None:
    if not can_delete_file(file, role, username):
        detail = f"You do not have permission to delete \"{file.file_name}\"."
        detail += f" (Role: {role.value})" if role else " (Not a member of this workspace)"
        raise PermissionDeniedError(detail, status_code=403)


def ensure_permission(role: Optional[WorkspaceRoleEnum], permission: PermissionEnum, action: str) -> None:
    if not has_permission(role, permission):
        detail = f"You do not have permission to {action}."
        detail += f" (Role: {role.value})" if role else " (Not a member of this workspace)"
        raise PermissionDeniedError(detail, status_code=403)
