from datetime import datetime, timezone
from typing import Any, Dict, Optional
from fastapi.encoders import jsonable_encoder


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def success_response(data: Any = None, message: str = "Success") -> Dict[str, Any]:
    """Standard success envelope"""
    return {
        "success": True,
        "message": message,
        "data": jsonable_encoder(data),
        "timestamp": _timestamp(),
    }


def error_response(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Standard error envelope"""
    error = {"code": code, "message": message}
    if details:
        error["details"] = jsonable_encoder(details)
    return {
        "success": False,
        "error": error,
        "timestamp": _timestamp(),
    }
