import re
from typing import Any, Dict, List, Optional
from fastapi import HTTPException, status
from fastapi.encoders import jsonable_encoder
from backoffice.schemas.base import (
    create_success_response,
    create_error_response,
    create_paginated_response
)
from backoffice.core.logging_config import get_logger

logger = get_logger(__name__)

# PostgreSQL: 'Key (name)=(Editors) already exists'
_PG_KEY_DETAIL = re.compile(r"Key \((.*?)\)=\((.*?)\)")
# SQLite: 'UNIQUE constraint failed: groups.name, groups.slug'
_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: ([\w., ]+)", re.IGNORECASE)


class ResponseWrapper:
    """Builds the standard JSON envelopes; payloads pass through jsonable_encoder"""

    @staticmethod
    def success(data: Any = None, message: str = "Success") -> Dict[str, Any]:
        return create_success_response(jsonable_encoder(data), message)

    @staticmethod
    def error(
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        return jsonable_encoder(create_error_response(message, error_code, details))

    @staticmethod
    def paginated(
        items: List[Any],
        total: int,
        page: int = 1,
        per_page: int = 10,
        message: str = "Success"
    ) -> Dict[str, Any]:
        return create_paginated_response(jsonable_encoder(items), total, page, per_page, message)

    @staticmethod
    def created(data: Any = None, message: str = "Resource created successfully") -> Dict[str, Any]:
        return create_success_response(jsonable_encoder(data), message)

    @staticmethod
    def deleted(message: str = "Resource deleted successfully") -> Dict[str, Any]:
        return create_success_response(None, message)


def not_found(resource: str, missing: Any) -> HTTPException:
    """404 with a structured body, e.g. not_found("User", [4, 9])"""
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=ResponseWrapper.error(
            message=f"{resource} not found",
            error_code=f"{resource.upper()}_NOT_FOUND",
            details={"missing": missing},
        ),
    )


def unprocessable(message: str, error_code: str, details: Optional[Dict[str, Any]] = None) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=ResponseWrapper.error(message=message, error_code=error_code, details=details),
    )


def _conflicting_fields(error_msg: str) -> Dict[str, Optional[str]]:
    match = _PG_KEY_DETAIL.search(error_msg)
    if match:
        return dict(zip(match.group(1).split(", "), match.group(2).split(", ")))

    match = _SQLITE_UNIQUE.search(error_msg)
    if match:
        # SQLite names the columns but not the values
        return {column.strip().split(".")[-1]: None for column in match.group(1).split(",")}
    return {}


def handle_db_error(error: Exception) -> HTTPException:
    """Map a SQLAlchemy error to 409 (unique), 404 (foreign key) or 500"""
    error_msg = str(error).strip().replace("\n", " ")
    lowered = error_msg.lower()

    if "duplicate key" in lowered or "unique constraint" in lowered:
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=ResponseWrapper.error(
                message="Resource already exists with the same values",
                error_code="DUPLICATE_RESOURCE",
                details={"db_error": error_msg, "conflicting_fields": _conflicting_fields(error_msg)},
            ),
        )

    if "foreign key" in lowered:
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=ResponseWrapper.error(
                message="Referenced resource not found",
                error_code="FOREIGN_KEY_VIOLATION",
                details={"db_error": error_msg},
            ),
        )

    logger.error(f"Database error: {error_msg}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=ResponseWrapper.error(
            message="Database operation failed",
            error_code="DATABASE_ERROR",
            details={"db_error": error_msg},
        ),
    )


def handle_http_error(error: Exception) -> HTTPException:
    """Pass structured HTTPExceptions through; wrap anything else as a 500"""
    if isinstance(error, HTTPException):
        detail = getattr(error, "detail", str(error))
        if isinstance(detail, dict) and detail.get("success") is not None:
            return error

        return HTTPException(
            status_code=error.status_code,
            detail=ResponseWrapper.error(
                message=str(detail),
                error_code="HTTP_ERROR",
                details={"original_error": detail},
            ),
        )

    logger.exception(f"Unexpected error: {error}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=ResponseWrapper.error(
            message="Unexpected server error",
            error_code="INTERNAL_SERVER_ERROR",
            details={"original_error": str(error)},
        ),
    )
