from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from ..auth.dependencies import owner_from_path, require_permission
from ..auth.identity import Identity
from ..db import get_session
from ..models import ShortUrl
from ..schemas import ShortUrlIn, ShortUrlOut


router = APIRouter(prefix="/api/short-urls", tags=["short-urls"])

_owner = owner_from_path("short_url", required=True)


@router.post("", response_model=ShortUrlOut, status_code=status.HTTP_201_CREATED)
def create_short_url(
    body: ShortUrlIn,
    identity: Identity = Depends(require_permission("short_url", "create")),
    session: Session = Depends(get_session),
):
    short_url = ShortUrl(
        short_code=body.short_code,
        original_url=body.original_url,
        user_id=identity.user_id,
        created_by=identity.user_id,
        group_id=identity.group_id or None,
    )
    session.add(short_url)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Short code already in use") from exc
    session.refresh(short_url)
    return short_url


@router.get("/{resource_id}", response_model=ShortUrlOut)
def get_short_url(
    resource_id: str,
    identity: Identity = Depends(require_permission("url", "read", resolve_owner=_owner)),
    session: Session = Depends(get_session),
):
    short_url = session.get(ShortUrl, resource_id)
    if short_url is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Short URL not found")
    return short_url


@router.delete("/{resource_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_short_url(
    resource_id: str,
    identity: Identity = Depends(require_permission("short_url", "delete", resolve_owner=_owner)),
    session: Session = Depends(get_session),
):
    short_url = session.get(ShortUrl, resource_id)
    if short_url is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Short URL not found")
    session.delete(short_url)
    session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
