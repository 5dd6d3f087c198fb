from typing import Any

from fastapi import HTTPException, status

from ..utils.audit_log import emit_audit_log


def audit_or_500(**kwargs: Any) -> None:
    """Emit an audit record after commit; a logging failure surfaces as 500."""
    try:
        emit_audit_log(**kwargs)
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed") from exc


def store_unavailable() -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="reservation store unavailable")
