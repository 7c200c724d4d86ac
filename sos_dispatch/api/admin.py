"""Admin endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from sos_dispatch.api.volunteers import to_response
from sos_dispatch.core.deps import require_admin
from sos_dispatch.core.exceptions import SOSError
from sos_dispatch.db.session import get_db
from sos_dispatch.models.user import User
from sos_dispatch.schemas.volunteer import VolunteerResponse
from sos_dispatch.services.volunteer_service import verify_volunteer

router = APIRouter(prefix="/admin", tags=["admin"])


@router.put("/volunteers/{volunteer_id}/verify", response_model=VolunteerResponse)
def verify(
    volunteer_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Verify a volunteer, making them eligible for alert matching."""
    try:
        volunteer = verify_volunteer(db, volunteer_id, current_user.id)
    except SOSError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return to_response(volunteer)
