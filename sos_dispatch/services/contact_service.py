"""Emergency contact service."""

from __future__ import annotations

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from sos_dispatch.core.alert_policies import MAX_ACTIVE_CONTACTS
from sos_dispatch.core.exceptions import NotFound, ValidationFailed
from sos_dispatch.models.emergency_contact import EmergencyContact


def list_active_contacts(db: Session, user_id: int) -> list[EmergencyContact]:
    """Active contacts for a user, primary first."""
    result = db.execute(
        select(EmergencyContact)
        .where(EmergencyContact.user_id == user_id, EmergencyContact.is_active.is_(True))
        .order_by(EmergencyContact.is_primary.desc(), EmergencyContact.id)
    )
    return list(result.scalars().all())


def _clear_primary(db: Session, user_id: int, keep_id: int | None = None) -> None:
    stmt = update(EmergencyContact).where(
        EmergencyContact.user_id == user_id,
        EmergencyContact.is_primary.is_(True),
    )
    if keep_id is not None:
        stmt = stmt.where(EmergencyContact.id != keep_id)
    db.execute(stmt.values(is_primary=False).execution_options(synchronize_session=False))


def add_contact(
    db: Session,
    user_id: int,
    name: str,
    phone: str,
    relation: str,
    email: str | None = None,
    is_primary: bool = False,
) -> EmergencyContact:
    """Add a contact. At most five active contacts, each with its own phone.

    The first active contact becomes primary; a new primary demotes the old one.
    """
    count = db.execute(
        select(func.count(EmergencyContact.id)).where(
            EmergencyContact.user_id == user_id,
            EmergencyContact.is_active.is_(True),
        )
    ).scalar_one()
    if count >= MAX_ACTIVE_CONTACTS:
        raise ValidationFailed(f"Maximum {MAX_ACTIVE_CONTACTS} emergency contacts allowed")

    duplicate = db.execute(
        select(EmergencyContact.id).where(
            EmergencyContact.user_id == user_id,
            EmergencyContact.phone == phone,
            EmergencyContact.is_active.is_(True),
        )
    ).first()
    if duplicate:
        raise ValidationFailed("Contact with this phone number already exists")

    is_primary = is_primary or count == 0
    if is_primary:
        _clear_primary(db, user_id)

    contact = EmergencyContact(
        user_id=user_id,
        name=name,
        phone=phone,
        email=email,
        relation=relation,
        is_primary=is_primary,
    )
    db.add(contact)
    db.commit()
    db.refresh(contact)
    return contact


def _get_own_contact(db: Session, user_id: int, contact_id: int) -> EmergencyContact:
    contact = db.get(EmergencyContact, contact_id)
    if not contact or contact.user_id != user_id or not contact.is_active:
        raise NotFound("Contact not found")
    return contact


def set_primary(db: Session, user_id: int, contact_id: int) -> EmergencyContact:
    contact = _get_own_contact(db, user_id, contact_id)
    _clear_primary(db, user_id, keep_id=contact.id)
    contact.is_primary = True
    db.commit()
    db.refresh(contact)
    return contact


def remove_contact(db: Session, user_id: int, contact_id: int) -> None:
    """Deactivate a contact. Past alerts keep referencing it.

    Removing the primary promotes the oldest remaining active contact.
    """
    contact = _get_own_contact(db, user_id, contact_id)
    was_primary = contact.is_primary
    contact.is_active = False
    contact.is_primary = False
    db.flush()

    if was_primary:
        successor = db.execute(
            select(EmergencyContact)
            .where(EmergencyContact.user_id == user_id, EmergencyContact.is_active.is_(True))
            .order_by(EmergencyContact.created_at, EmergencyContact.id)
            .limit(1)
        ).scalar_one_or_none()
        if successor is not None:
            successor.is_primary = True
    db.commit()
