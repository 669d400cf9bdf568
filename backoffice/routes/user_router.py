from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from backoffice.dependencies import (
    get_audit_context,
    get_permission_service,
    get_user_access_service,
)
from backoffice.schemas.audit_log import AuditContext
from backoffice.schemas.iam import RoleIdsRequest, PermissionIdsRequest
from backoffice.services.permission_service import PermissionService
from backoffice.services.user_access_service import UserAccessService
from backoffice.utils.response_utils import ResponseWrapper, handle_db_error, handle_http_error
from backoffice.core.logging_config import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/users", tags=["users"])


@router.put("/{user_id}/roles", status_code=status.HTTP_200_OK)
def sync_user_roles(
    user_id: int,
    payload: RoleIdsRequest,
    access_service: UserAccessService = Depends(get_user_access_service),
    context: AuditContext = Depends(get_audit_context),
):
    try:
        user = access_service.get_user(user_id)
        result = access_service.sync_roles(user, payload.role_ids, context)
        return ResponseWrapper.success(
            data={"role_ids": result.new_ids, "added": result.added, "removed": result.removed},
            message="User roles updated successfully",
        )
    except SQLAlchemyError as e:
        raise handle_db_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error while syncing roles of user {user_id}: {e}")
        raise handle_http_error(e)


@router.put("/{user_id}/permissions", status_code=status.HTTP_200_OK)
def sync_user_permissions(
    user_id: int,
    payload: PermissionIdsRequest,
    access_service: UserAccessService = Depends(get_user_access_service),
    context: AuditContext = Depends(get_audit_context),
):
    try:
        user = access_service.get_user(user_id)
        result = access_service.sync_permissions(user, payload.permission_ids, context)
        return ResponseWrapper.success(
            data={"permission_ids": result.new_ids, "added": result.added, "removed": result.removed},
            message="User permissions updated successfully",
        )
    except SQLAlchemyError as e:
        raise handle_db_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error while syncing permissions of user {user_id}: {e}")
        raise handle_http_error(e)


@router.get("/{user_id}/permissions", status_code=status.HTTP_200_OK)
def get_user_permissions(
    user_id: int,
    access_service: UserAccessService = Depends(get_user_access_service),
    permission_service: PermissionService = Depends(get_permission_service),
):
    """Effective permissions: direct, through roles and through groups"""
    try:
        user = access_service.get_user(user_id)
        return ResponseWrapper.success(
            data={
                "user_id": user.id,
                "is_super_admin": permission_service.is_super_admin(user.id),
                "permissions": permission_service.get_user_permissions(user.id),
                "group_permissions": permission_service.get_group_permissions(user.id),
            }
        )
    except SQLAlchemyError as e:
        raise handle_db_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error while fetching permissions of user {user_id}: {e}")
        raise handle_http_error(e)
