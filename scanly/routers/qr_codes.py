from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlmodel import Session

from ..auth.dependencies import owner_from_path, require_permission
from ..auth.identity import Identity
from ..db import get_session
from ..models import QrCode
from ..schemas import QrCodeIn, QrCodeOut


router = APIRouter(prefix="/api/qr-codes", tags=["qr-codes"])

_owner = owner_from_path("qr_code", required=True)


def _get_or_404(session: Session, resource_id: str) -> QrCode:
    qr_code = session.get(QrCode, resource_id)
    if qr_code is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="QR code not found")
    return qr_code


@router.post("", response_model=QrCodeOut, status_code=status.HTTP_201_CREATED)
def create_qr_code(
    body: QrCodeIn,
    identity: Identity = Depends(require_permission("qr_code", "create")),
    session: Session = Depends(get_session),
):
    qr_code = QrCode(
        name=body.name,
        content=body.content,
        user_id=identity.user_id,
        created_by=identity.user_id,
        group_id=identity.group_id or None,
    )
    session.add(qr_code)
    session.commit()
    session.refresh(qr_code)
    return qr_code


@router.get("/{resource_id}", response_model=QrCodeOut)
def get_qr_code(
    resource_id: str,
    identity: Identity = Depends(require_permission("qr_code", "read", resolve_owner=_owner)),
    session: Session = Depends(get_session),
):
    return _get_or_404(session, resource_id)


@router.delete("/{resource_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_qr_code(
    resource_id: str,
    identity: Identity = Depends(require_permission("qr_code", "delete", resolve_owner=_owner)),
    session: Session = Depends(get_session),
):
    qr_code = _get_or_404(session, resource_id)
    session.delete(qr_code)
    session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
