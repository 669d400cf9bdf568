from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.exc import SQLAlchemyError
from typing import Optional

from backoffice.dependencies import (
    get_audit_context,
    get_group_member_service,
    get_group_service,
)
from backoffice.schemas.audit_log import AuditContext
from backoffice.schemas.group import (
    GroupCreate,
    GroupUpdate,
    GroupResponse,
    MemberIdsRequest,
    TransferMembersRequest,
)
from backoffice.services.group_member_service import GroupMemberService
from backoffice.services.group_service import GroupService
from backoffice.services.permission_service import PermissionService
from backoffice.utils.response_utils import ResponseWrapper, handle_db_error, handle_http_error
from backoffice.core.logging_config import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/groups", tags=["groups"])


def serialize_group_detail(group, members_count: int) -> dict:
    """Members are listed separately through GET /groups/{id}/members"""
    return {
        **GroupResponse.model_validate(group).model_dump(),
        "members_count": members_count,
        "roles": [{"id": r.id, "name": r.name} for r in sorted(group.roles, key=lambda r: r.name)],
        "permissions": PermissionService.group_by_module(group.permissions),
    }


def serialize_member(user) -> dict:
    return {"id": user.id, "name": user.name, "email": user.email}


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_group(
    group_in: GroupCreate,
    group_service: GroupService = Depends(get_group_service),
    context: AuditContext = Depends(get_audit_context),
):
    try:
        group = group_service.create_group(group_in, context)
        return ResponseWrapper.created(
            data=serialize_group_detail(group, group_service.count_members(group)),
            message="Group created successfully",
        )
    except SQLAlchemyError as e:
        logger.error(f"DB error while creating group {group_in.name}: {e}")
        raise handle_db_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error while creating group: {e}")
        raise handle_http_error(e)


@router.get("/", status_code=status.HTTP_200_OK)
def list_groups(
    search: Optional[str] = Query(None, description="Filter by name, slug or description"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    group_service: GroupService = Depends(get_group_service),
):
    try:
        rows, total = group_service.list_groups(search=search, skip=(page - 1) * per_page, limit=per_page)
        items = [
            {
                **GroupResponse.model_validate(row["group"]).model_dump(),
                "users_count": row["users_count"],
                "permissions_count": row["permissions_count"],
            }
            for row in rows
        ]
        return ResponseWrapper.paginated(items=items, total=total, page=page, per_page=per_page)
    except SQLAlchemyError as e:
        raise handle_db_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error while listing groups: {e}")
        raise handle_http_error(e)


@router.get("/{group_id}", status_code=status.HTTP_200_OK)
def get_group(group_id: int, group_service: GroupService = Depends(get_group_service)):
    try:
        group = group_service.get_group(group_id)
        return ResponseWrapper.success(data=serialize_group_detail(group, group_service.count_members(group)))
    except SQLAlchemyError as e:
        raise handle_db_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error while fetching group {group_id}: {e}")
        raise handle_http_error(e)


@router.put("/{group_id}", status_code=status.HTTP_200_OK)
def update_group(
    group_id: int,
    group_in: GroupUpdate,
    group_service: GroupService = Depends(get_group_service),
    context: AuditContext = Depends(get_audit_context),
):
    try:
        group = group_service.get_group(group_id)
        group = group_service.update_group(group, group_in, context)
        return ResponseWrapper.success(
            data=serialize_group_detail(group, group_service.count_members(group)),
            message="Group updated successfully",
        )
    except SQLAlchemyError as e:
        logger.error(f"DB error while updating group {group_id}: {e}")
        raise handle_db_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error while updating group {group_id}: {e}")
        raise handle_http_error(e)


@router.delete("/{group_id}", status_code=status.HTTP_200_OK)
def delete_group(
    group_id: int,
    group_service: GroupService = Depends(get_group_service),
    context: AuditContext = Depends(get_audit_context),
):
    try:
        group = group_service.get_group(group_id)
        group_service.delete_group(group, context)
        return ResponseWrapper.deleted(message="Group deleted successfully")
    except SQLAlchemyError as e:
        raise handle_db_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error while deleting group {group_id}: {e}")
        raise handle_http_error(e)


# ---------------------------
# Membership
# ---------------------------
@router.get("/{group_id}/members", status_code=status.HTTP_200_OK)
def list_members(
    group_id: int,
    search: Optional[str] = Query(None, description="Filter by name or email"),
    sort: Optional[str] = Query(None, description="name or email"),
    direction: Optional[str] = Query(None, description="asc or desc"),
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, description="10, 20, 30 or 50"),
    group_service: GroupService = Depends(get_group_service),
    member_service: GroupMemberService = Depends(get_group_member_service),
):
    try:
        group = group_service.get_group(group_id)
        result = member_service.list_members(group, search, sort, direction, page, per_page)
        return ResponseWrapper.paginated(
            items=[serialize_member(user) for user in result.users],
            total=result.total,
            page=result.page,
            per_page=result.per_page,
        )
    except SQLAlchemyError as e:
        raise handle_db_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error while listing members of group {group_id}: {e}")
        raise handle_http_error(e)


@router.get("/{group_id}/available-users", status_code=status.HTTP_200_OK)
def list_available_users(
    group_id: int,
    search: Optional[str] = Query(None, description="Filter by name or email"),
    sort: Optional[str] = Query(None, description="name or email"),
    direction: Optional[str] = Query(None, description="asc or desc"),
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, description="10, 20, 30 or 50"),
    group_service: GroupService = Depends(get_group_service),
    member_service: GroupMemberService = Depends(get_group_member_service),
):
    """Users not yet in the group, for the add-members picker"""
    try:
        group = group_service.get_group(group_id)
        result = member_service.list_available_users(group, search, sort, direction, page, per_page)
        return ResponseWrapper.paginated(
            items=[serialize_member(user) for user in result.users],
            total=result.total,
            page=result.page,
            per_page=result.per_page,
        )
    except SQLAlchemyError as e:
        raise handle_db_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error while listing available users for group {group_id}: {e}")
        raise handle_http_error(e)


@router.post("/{group_id}/members", status_code=status.HTTP_200_OK)
def add_members(
    group_id: int,
    payload: MemberIdsRequest,
    group_service: GroupService = Depends(get_group_service),
    member_service: GroupMemberService = Depends(get_group_member_service),
    context: AuditContext = Depends(get_audit_context),
):
    try:
        group = group_service.get_group(group_id)
        result = member_service.add_members(group, payload.user_ids, context)
        return ResponseWrapper.success(
            data={"count": result.count, "skipped": result.skipped},
            message=result.message,
        )
    except SQLAlchemyError as e:
        logger.error(f"DB error while adding members to group {group_id}: {e}")
        raise handle_db_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error while adding members to group {group_id}: {e}")
        raise handle_http_error(e)


@router.post("/{group_id}/members/remove", status_code=status.HTTP_200_OK)
def remove_members(
    group_id: int,
    payload: MemberIdsRequest,
    group_service: GroupService = Depends(get_group_service),
    member_service: GroupMemberService = Depends(get_group_member_service),
    context: AuditContext = Depends(get_audit_context),
):
    try:
        group = group_service.get_group(group_id)
        result = member_service.remove_members(group, payload.user_ids, context)
        return ResponseWrapper.success(data={"count": result.count}, message=result.message)
    except SQLAlchemyError as e:
        logger.error(f"DB error while removing members from group {group_id}: {e}")
        raise handle_db_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error while removing members from group {group_id}: {e}")
        raise handle_http_error(e)


@router.post("/{group_id}/members/transfer", status_code=status.HTTP_200_OK)
def transfer_members(
    group_id: int,
    payload: TransferMembersRequest,
    group_service: GroupService = Depends(get_group_service),
    member_service: GroupMemberService = Depends(get_group_member_service),
    context: AuditContext = Depends(get_audit_context),
):
    try:
        source = group_service.get_group(group_id)
        target = group_service.get_group(payload.target_group_id)
        result = member_service.transfer_members(source, target, payload.user_ids, context)
        return ResponseWrapper.success(
            data={
                "count": result.count,
                "removed": result.removed,
                "already_in_target": result.already_in_target,
            },
            message=result.message,
        )
    except SQLAlchemyError as e:
        logger.error(f"DB error while transferring members from group {group_id}: {e}")
        raise handle_db_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error while transferring members from group {group_id}: {e}")
        raise handle_http_error(e)
