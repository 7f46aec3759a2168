from fastapi import APIRouter

from db import SessionDep
from responses import parse_id, send_result
from schemas import DonationCreate
from services import ServicesDep
from .auth import CurrentUserDep, OptionalUserDep

router = APIRouter(
    prefix="/api/help-requests/{help_request_id}/donations",
    tags=["donations"],
)


@router.get("")
def list_donations(
    help_request_id: str,
    session: SessionDep,
    services: ServicesDep,
    current: OptionalUserDep,
):
    """
    All donations pledged to a help request.
    The owner of the request also sees each donator's contact number.
    """
    request_id = parse_id(help_request_id, "help request")
    requester_id = current.id if current else None
    result = services.donations.get_donations_by_help_request_id(
        session, request_id, requester_id
    )
    return send_result(result)


@router.post("")
def create_donation(
    help_request_id: str,
    donation_in: DonationCreate,
    session: SessionDep,
    services: ServicesDep,
    current: CurrentUserDep,
):
    request_id = parse_id(help_request_id, "help request")
    donation_in.help_request_id = request_id
    result = services.donations.create_donation(session, request_id, donation_in, current.id)
    return send_result(result, status_code=201)


@router.patch("/{donation_id}/schedule")
def mark_as_scheduled(
    help_request_id: str,
    donation_id: str,
    session: SessionDep,
    services: ServicesDep,
    current: CurrentUserDep,
):
    """Donator only."""
    request_id = parse_id(help_request_id, "help request")
    result = services.donations.mark_as_scheduled(
        session, parse_id(donation_id, "donation"), current.id, help_request_id=request_id
    )
    return send_result(result)


@router.patch("/{donation_id}/complete-donator")
def mark_as_completed_by_donator(
    help_request_id: str,
    donation_id: str,
    session: SessionDep,
    services: ServicesDep,
    current: CurrentUserDep,
):
    """Donator only."""
    request_id = parse_id(help_request_id, "help request")
    result = services.donations.mark_as_completed_by_donator(
        session, parse_id(donation_id, "donation"), current.id, help_request_id=request_id
    )
    return send_result(result)


@router.patch("/{donation_id}/complete-owner")
def mark_as_completed_by_owner(
    help_request_id: str,
    donation_id: str,
    session: SessionDep,
    services: ServicesDep,
    current: CurrentUserDep,
):
    """Owner of the help request only."""
    request_id = parse_id(help_request_id, "help request")
    result = services.donations.mark_as_completed_by_owner(
        session, parse_id(donation_id, "donation"), current.id, help_request_id=request_id
    )
    return send_result(result)
