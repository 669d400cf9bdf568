from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from backoffice.dependencies import get_audit_context, get_role_service
from backoffice.schemas.audit_log import AuditContext
from backoffice.schemas.iam import RoleCreate, RoleUpdate, RoleResponse
from backoffice.services.permission_service import PermissionService
from backoffice.services.role_service import RoleService
from backoffice.utils.response_utils import ResponseWrapper, handle_db_error, handle_http_error
from backoffice.core.logging_config import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/roles", tags=["IAM Roles"])


def serialize_role(role) -> dict:
    return {
        **RoleResponse.model_validate(role).model_dump(),
        "permissions": PermissionService.group_by_module(role.permissions),
    }


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_role(
    role_in: RoleCreate,
    role_service: RoleService = Depends(get_role_service),
    context: AuditContext = Depends(get_audit_context),
):
    try:
        role = role_service.create_role(role_in, context)
        return ResponseWrapper.created(data=serialize_role(role), message="Role created successfully")
    except SQLAlchemyError as e:
        logger.error(f"DB error while creating role {role_in.name}: {e}")
        raise handle_db_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error while creating role: {e}")
        raise handle_http_error(e)


@router.put("/{role_id}", status_code=status.HTTP_200_OK)
def update_role(
    role_id: int,
    role_in: RoleUpdate,
    role_service: RoleService = Depends(get_role_service),
    context: AuditContext = Depends(get_audit_context),
):
    try:
        role = role_service.get_role(role_id)
        role = role_service.update_role(role, role_in, context)
        return ResponseWrapper.success(data=serialize_role(role), message="Role updated successfully")
    except SQLAlchemyError as e:
        logger.error(f"DB error while updating role {role_id}: {e}")
        raise handle_db_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error while updating role {role_id}: {e}")
        raise handle_http_error(e)


@router.delete("/{role_id}", status_code=status.HTTP_200_OK)
def delete_role(
    role_id: int,
    role_service: RoleService = Depends(get_role_service),
    context: AuditContext = Depends(get_audit_context),
):
    try:
        role = role_service.get_role(role_id)
        role_service.delete_role(role, context)
        return ResponseWrapper.deleted(message="Role deleted successfully")
    except SQLAlchemyError as e:
        raise handle_db_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error while deleting role {role_id}: {e}")
        raise handle_http_error(e)
