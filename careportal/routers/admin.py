"""Admin router: patient/clinician assignment management."""
import logging

from fastapi import APIRouter, Depends
from sqlmodel import Session

from careportal.db.config import get_session
from careportal.middleware.auth import CurrentUser, require_admin
from careportal.schemas.message import AssignmentOut, AssignmentResponse, AssignmentUpdateRequest
from careportal.services.authorization import AssignmentRegistry
from careportal.utils.ids import parse_id
from careportal.utils.logger import audit_logger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


def get_assignment_registry(session: Session = Depends(get_session)) -> AssignmentRegistry:
    """Dependency for getting AssignmentRegistry instance."""
    return AssignmentRegistry(session)


@router.put("/assignments", response_model=AssignmentResponse)
async def upsert_assignment(
    request: AssignmentUpdateRequest,
    admin: CurrentUser = Depends(require_admin),
    registry: AssignmentRegistry = Depends(get_assignment_registry),
):
    """Create or (de)activate the assignment between a patient and a clinician."""
    assignment = registry.set_active(
        patient_id=parse_id(request.patient_id, "patientId"),
        clinician_id=parse_id(request.clinician_id, "clinicianId"),
        is_active=request.is_active
    )
    audit_logger.info(
        "Assignment updated",
        patient_id=assignment.patient_id,
        clinician_id=assignment.clinician_id,
        is_active=assignment.is_active,
        admin_id=admin.user_id,
    )
    return AssignmentResponse(assignment=AssignmentOut(
        id=assignment.id,
        patient_id=assignment.patient_id,
        clinician_id=assignment.clinician_id,
        is_active=assignment.is_active,
        updated_at=assignment.updated_at,
    ))
