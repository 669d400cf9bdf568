"""
Envelope builders for every JSON response: success flag, message, payload
and a UTC timestamp. Routers go through ResponseWrapper rather than calling
these directly.
"""
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def create_success_response(data: Any = None, message: str = "Success") -> Dict[str, Any]:
    return {"success": True, "message": message, "data": data, "timestamp": _now()}


def create_error_response(message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        "success": False,
        "message": message,
        "error_code": error_code,
        "details": details,
        "timestamp": _now(),
    }


def create_paginated_response(
    items: List[Any],
    total: int,
    page: int,
    per_page: int,
    message: str = "Success"
) -> Dict[str, Any]:
    """Items plus a meta block with page arithmetic"""
    total_pages = (total + per_page - 1) // per_page
    return {
        "success": True,
        "message": message,
        "data": items,
        "meta": {
            "total": total,
            "page": page,
            "per_page": per_page,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
        "timestamp": _now(),
    }
