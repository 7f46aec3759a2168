from typing import Optional

from fastapi import APIRouter

from db import SessionDep
from enums import Urgency
from responses import parse_id, send_result
from schemas import HelpRequestCreate
from services import ServicesDep
from .auth import OptionalUserDep

router = APIRouter(prefix="/api/help-requests", tags=["help-requests"])


@router.get("")
def list_help_requests(
    session: SessionDep,
    services: ServicesDep,
    urgency: Optional[Urgency] = None,
    district: Optional[str] = None,
):
    """
    Open help requests from the last 30 days, newest first.
    Optionally filtered by urgency and by district (substring of the area).
    """
    district = district.strip() if district else None
    result = services.help_requests.list_open_help_requests(
        session, urgency=urgency, district=district or None
    )
    return send_result(result)


@router.post("")
def create_help_request(
    request_in: HelpRequestCreate,
    session: SessionDep,
    services: ServicesDep,
    current: OptionalUserDep,
):
    owner_id = current.id if current else None
    result = services.help_requests.create_help_request(session, request_in, user_id=owner_id)
    return send_result(result, status_code=201)


@router.get("/summary")
def help_requests_summary(session: SessionDep, services: ServicesDep):
    return send_result(services.help_requests.get_summary(session))


@router.get("/{help_request_id}")
def get_help_request(help_request_id: str, session: SessionDep, services: ServicesDep):
    request_id = parse_id(help_request_id, "help request")
    return send_result(services.help_requests.get_help_request_by_id(session, request_id))
