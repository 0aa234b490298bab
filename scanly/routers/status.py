from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..db import backend_name, get_session
from ..schemas import ForbiddenOut, StatusResponse


router = APIRouter(tags=["status"])


@router.get("/health", response_model=StatusResponse)
def get_health():
    return StatusResponse()


@router.get("/health/db", response_model=dict)
def db_health(session=Depends(get_session)):
    details = {"backend": backend_name()}
    try:
        session.exec(text("SELECT 1"))
        ok = True
    except SQLAlchemyError as e:
        ok = False
        details["error"] = str(e)
    return {"ok": ok, "details": details}


def _forbidden_payload(from_path: Optional[str], reason: Optional[str]) -> ForbiddenOut:
    return ForbiddenOut(from_path=from_path, reason=reason)


@router.get("/forbidden", response_model=ForbiddenOut, status_code=403)
def forbidden(
    from_path: Optional[str] = Query(default=None, alias="from"),
    reason: Optional[str] = None,
):
    """Landing payload for guard redirects; echoes the blocked path and reason."""
    return _forbidden_payload(from_path, reason)


@router.get("/403", response_model=ForbiddenOut, status_code=403, include_in_schema=False)
def forbidden_short(
    from_path: Optional[str] = Query(default=None, alias="from"),
    reason: Optional[str] = None,
):
    return _forbidden_payload(from_path, reason)
