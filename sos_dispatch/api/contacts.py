"""Emergency contacts API."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from sos_dispatch.core.deps import get_current_user
from sos_dispatch.core.exceptions import SOSError
from sos_dispatch.db.session import get_db
from sos_dispatch.models.user import User
from sos_dispatch.schemas.contact import ContactCreate, ContactResponse
from sos_dispatch.services.contact_service import add_contact, list_active_contacts, remove_contact, set_primary

router = APIRouter(prefix="/contacts", tags=["contacts"])


@router.get("", response_model=list[ContactResponse])
def list_contacts(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Active contacts, primary first."""
    return list_active_contacts(db, current_user.id)


@router.post("", response_model=ContactResponse, status_code=status.HTTP_201_CREATED)
def create_contact(
    data: ContactCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        return add_contact(
            db,
            current_user.id,
            data.name,
            data.phone,
            data.relation,
            email=data.email,
            is_primary=data.is_primary,
        )
    except SOSError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.put("/{contact_id}/primary", response_model=ContactResponse)
def make_primary(
    contact_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Make this the primary contact (the one that gets a voice call)."""
    try:
        return set_primary(db, current_user.id, contact_id)
    except SOSError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.delete("/{contact_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_contact(
    contact_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        remove_contact(db, current_user.id, contact_id)
    except SOSError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
