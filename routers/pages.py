# routers/pages.py
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from db import SessionDep
from enums import Urgency
from responses import parse_id
from services import ServicesDep
from .auth import OptionalUserDep

router = APIRouter(tags=["pages"], include_in_schema=False)
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))


@router.get("/", response_class=HTMLResponse)
def index_page(
    request: Request,
    session: SessionDep,
    services: ServicesDep,
    current: OptionalUserDep,
    urgency: Optional[Urgency] = None,
    district: Optional[str] = None,
):
    """
    Landing page: summary cards plus the list of open help requests.
    """
    district = (district or "").strip() or None
    listing = services.help_requests.list_open_help_requests(
        session, urgency=urgency, district=district
    )
    summary = services.help_requests.get_summary(session)
    open_count = services.help_requests.count_open_help_requests(session)

    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "current_user": current,
            "help_requests": listing.data if listing.success else [],
            "summary": summary.data if summary.success else None,
            "open_count": open_count.data if open_count.success else 0,
            "error": listing.error or summary.error,
            "filters": {"urgency": urgency.value if urgency else "", "district": district or ""},
            "urgencies": [u.value for u in Urgency],
        },
    )


@router.get("/requests/{help_request_id}", response_class=HTMLResponse)
def help_request_page(
    help_request_id: str,
    request: Request,
    session: SessionDep,
    services: ServicesDep,
    current: OptionalUserDep,
):
    """Detail page for one help request and the donations pledged to it."""
    try:
        request_id = parse_id(help_request_id, "help request")
    except HTTPException as exc:
        return templates.TemplateResponse(
            request,
            "request_detail.html",
            {"current_user": current, "help_request": None, "donations": [], "error": exc.detail},
            status_code=exc.status_code,
        )

    found = services.help_requests.get_help_request_by_id(session, request_id)
    if not found.success:
        return templates.TemplateResponse(
            request,
            "request_detail.html",
            {"current_user": current, "help_request": None, "donations": [], "error": found.error},
            status_code=404,
        )

    requester_id = current.id if current else None
    donations = services.donations.get_donations_by_help_request_id(
        session, request_id, requester_id
    )
    return templates.TemplateResponse(
        request,
        "request_detail.html",
        {
            "current_user": current,
            "help_request": found.data,
            "donations": donations.data if donations.success else [],
            "is_owner": requester_id is not None and found.data.user_id == requester_id,
            "error": donations.error,
        },
    )
