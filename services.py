"""
Business rules for users, help requests, donations and ration items.

Services never raise for an expected failure. They hand back a ServiceResult
and the routers decide the HTTP status from its ``kind``. Store errors are
logged here and reported with a generic "Failed to ..." message.
"""
import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Annotated, Any, Optional

from fastapi import Depends, Request
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from config import Settings
from dao import DonationDao, HelpRequestDao, ItemDao, RefreshTokenDao, UserDao
from enums import HelpRequestStatus, Urgency, UserRole, UserStatus
from models import utcnow
from schemas import (
    AccessTokenResponse,
    DonationCreate,
    DonationRead,
    DonationWithDonatorRead,
    HelpRequestCreate,
    HelpRequestRead,
    HelpRequestSummary,
    ItemCreate,
    ItemRead,
    ItemUpdate,
    LoginResponse,
    UserCreate,
    UserRead,
)
from security import (
    create_access_token,
    create_refresh_token,
    verify_password,
    verify_refresh_token,
)

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INTERNAL = "internal"


@dataclass
class ServiceResult:
    success: bool
    data: Any = None
    message: Optional[str] = None
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None

    @classmethod
    def ok(cls, data: Any = None, message: Optional[str] = None) -> "ServiceResult":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, error: str, kind: ErrorKind = ErrorKind.VALIDATION) -> "ServiceResult":
        return cls(success=False, error=error, kind=kind)


def _store_failure(session: Session, where: str, error: str) -> ServiceResult:
    session.rollback()
    logger.exception("Error in %s", where)
    return ServiceResult.fail(error, ErrorKind.INTERNAL)


class UserService:
    def __init__(
        self,
        user_dao: UserDao,
        refresh_token_dao: RefreshTokenDao,
        refresh_token_days: int = 7,
    ) -> None:
        self.user_dao = user_dao
        self.refresh_token_dao = refresh_token_dao
        self.refresh_token_days = refresh_token_days

    def register_or_login(self, session: Session, data: UserCreate) -> ServiceResult:
        """
        Single entry point for signup and signin.

        An unknown username is registered (always with the USER role); a known
        one is logged in, checking the password only if the account has one.
        Either way a fresh access/refresh token pair is issued.
        """
        username = (data.username or "").strip()
        if len(username) < 3 or len(username) > 50:
            return ServiceResult.fail("Username must be between 3 and 50 characters")

        if data.password is not None and len(data.password) < 6:
            return ServiceResult.fail("Password must be at least 6 characters if provided")

        try:
            existing = self.user_dao.find_by_username(session, username)

            if existing is not None:
                if existing.status != UserStatus.ACTIVE.value:
                    return ServiceResult.fail(
                        "Account is disabled. Please contact administrator",
                        ErrorKind.FORBIDDEN,
                    )
                if existing.password_hash:
                    if not data.password:
                        return ServiceResult.fail("Password is required for this account")
                    if not verify_password(data.password, existing.password_hash):
                        return ServiceResult.fail(
                            "Invalid username or password", ErrorKind.FORBIDDEN
                        )
                user = existing
            else:
                try:
                    user = self.user_dao.create(
                        session,
                        username=username,
                        password=data.password,
                        role=UserRole.USER,
                        contact_number=data.contact_number,
                    )
                except IntegrityError:
                    # lost a race against a concurrent registration of the same name
                    session.rollback()
                    logger.warning("Duplicate registration for username %r", username)
                    return ServiceResult.fail("Username already exists", ErrorKind.CONFLICT)

            access_token = create_access_token(user.id, user.role)
            refresh_token = create_refresh_token(user.id)
            expires_at = utcnow() + timedelta(days=self.refresh_token_days)
            self.refresh_token_dao.create(session, user.id, refresh_token, expires_at)

            payload = LoginResponse(
                user=UserRead.model_validate(user),
                access_token=access_token,
                refresh_token=refresh_token,
            )
        except SQLAlchemyError:
            return _store_failure(session, "UserService.register_or_login", "Failed to register user")

        message = "Login successful" if existing is not None else "User registered successfully"
        logger.info("%s: %s (id=%s)", message, user.username, user.id)
        return ServiceResult.ok(payload, message)

    def refresh_access_token(self, session: Session, refresh_token: str) -> ServiceResult:
        if verify_refresh_token(refresh_token) is None:
            return ServiceResult.fail("Invalid or expired refresh token", ErrorKind.UNAUTHORIZED)

        try:
            stored = self.refresh_token_dao.find_valid(session, refresh_token)
            if stored is None:
                return ServiceResult.fail(
                    "Invalid or expired refresh token", ErrorKind.UNAUTHORIZED
                )
            user = self.user_dao.find_by_id(session, stored.user_id)
        except SQLAlchemyError:
            return _store_failure(session, "UserService.refresh_access_token", "Failed to refresh token")

        if user is None or user.status != UserStatus.ACTIVE.value:
            return ServiceResult.fail("Account is disabled. Please contact administrator", ErrorKind.UNAUTHORIZED)

        token = create_access_token(user.id, user.role)
        return ServiceResult.ok(AccessTokenResponse(access_token=token), "Token refreshed")

    def logout(self, session: Session, refresh_token: str) -> ServiceResult:
        try:
            deleted = self.refresh_token_dao.delete(session, refresh_token)
        except SQLAlchemyError:
            return _store_failure(session, "UserService.logout", "Failed to log out")
        if not deleted:
            return ServiceResult.fail("Refresh token not found", ErrorKind.NOT_FOUND)
        return ServiceResult.ok(None, "Logged out successfully")

    def get_user_by_id(self, session: Session, user_id: int) -> ServiceResult:
        try:
            user = self.user_dao.find_by_id(session, user_id)
        except SQLAlchemyError:
            return _store_failure(session, f"UserService.get_user_by_id ({user_id})", "Failed to retrieve user")
        if user is None:
            return ServiceResult.fail("User not found", ErrorKind.NOT_FOUND)
        return ServiceResult.ok(UserRead.model_validate(user))


class HelpRequestService:
    def __init__(self, help_request_dao: HelpRequestDao) -> None:
        self.help_request_dao = help_request_dao

    def list_open_help_requests(
        self,
        session: Session,
        urgency: Optional[Urgency] = None,
        district: Optional[str] = None,
    ) -> ServiceResult:
        try:
            rows = self.help_request_dao.find_all(session, urgency=urgency, district=district)
        except SQLAlchemyError:
            return _store_failure(session, "HelpRequestService.list_open_help_requests", "Failed to retrieve help requests")
        return ServiceResult.ok([HelpRequestRead.model_validate(r) for r in rows])

    def count_open_help_requests(self, session: Session) -> ServiceResult:
        try:
            return ServiceResult.ok(self.help_request_dao.count(session))
        except SQLAlchemyError:
            return _store_failure(session, "HelpRequestService.count_open_help_requests", "Failed to count help requests")

    def get_help_request_by_id(self, session: Session, help_request_id: int) -> ServiceResult:
        try:
            row = self.help_request_dao.find_by_id(session, help_request_id)
        except SQLAlchemyError:
            return _store_failure(session, f"HelpRequestService.get_help_request_by_id ({help_request_id})", "Failed to retrieve help request")
        if row is None:
            return ServiceResult.fail("Help request not found", ErrorKind.NOT_FOUND)
        return ServiceResult.ok(HelpRequestRead.model_validate(row))

    def create_help_request(
        self, session: Session, data: HelpRequestCreate, user_id: Optional[int] = None
    ) -> ServiceResult:
        try:
            row = self.help_request_dao.create(session, data, user_id=user_id)
        except SQLAlchemyError:
            return _store_failure(session, "HelpRequestService.create_help_request", "Failed to create help request")
        logger.info("Help request %s created (owner=%s)", row.id, user_id)
        return ServiceResult.ok(HelpRequestRead.model_validate(row), "Help request created successfully")

    def get_summary(self, session: Session) -> ServiceResult:
        try:
            summary = self.help_request_dao.get_summary(session)
        except SQLAlchemyError:
            return _store_failure(session, "HelpRequestService.get_summary", "Failed to retrieve help requests summary")
        return ServiceResult.ok(HelpRequestSummary.model_validate(summary))


class DonationService:
    def __init__(self, donation_dao: DonationDao, help_request_dao: HelpRequestDao) -> None:
        self.donation_dao = donation_dao
        self.help_request_dao = help_request_dao

    def _find_donation(
        self, session: Session, donation_id: int, help_request_id: Optional[int]
    ):
        """The donation, or None when missing or filed under another help request."""
        donation = self.donation_dao.find_by_id(session, donation_id)
        if donation is None:
            return None
        if help_request_id is not None and donation.help_request_id != help_request_id:
            return None
        return donation

    def get_donations_by_help_request_id(
        self,
        session: Session,
        help_request_id: int,
        requester_id: Optional[int] = None,
    ) -> ServiceResult:
        """Donations newest first; the donator's contact number is shown to the owner only."""
        try:
            help_request = self.help_request_dao.find_by_id(session, help_request_id)
            if help_request is None:
                return ServiceResult.fail("Help request not found", ErrorKind.NOT_FOUND)
            rows = self.donation_dao.find_by_help_request_id(session, help_request_id)
        except SQLAlchemyError:
            return _store_failure(
                session,
                f"DonationService.get_donations_by_help_request_id ({help_request_id})",
                "Failed to retrieve donations",
            )

        is_owner = requester_id is not None and help_request.user_id == requester_id
        donations = []
        for donation, donator in rows:
            item = DonationWithDonatorRead.model_validate(donation)
            item.donator_username = donator.username
            if is_owner:
                item.donator_contact_number = donator.contact_number
            donations.append(item)
        return ServiceResult.ok(donations)

    def create_donation(
        self,
        session: Session,
        help_request_id: int,
        data: DonationCreate,
        donator_id: int,
    ) -> ServiceResult:
        if not data.ration_items:
            return ServiceResult.fail("Ration items are required")

        try:
            help_request = self.help_request_dao.find_by_id(session, help_request_id)
            if help_request is None:
                return ServiceResult.fail("Help request not found", ErrorKind.NOT_FOUND)
            if help_request.status != HelpRequestStatus.OPEN.value:
                return ServiceResult.fail("Help request is not open for donations")
            donation = self.donation_dao.create(
                session, help_request_id, donator_id, data.ration_items
            )
        except SQLAlchemyError:
            return _store_failure(session, "DonationService.create_donation", "Failed to create donation")

        logger.info(
            "Donation %s pledged to help request %s by user %s",
            donation.id, help_request_id, donator_id,
        )
        return ServiceResult.ok(DonationRead.model_validate(donation), "Donation created successfully")

    def mark_as_scheduled(
        self, session: Session, donation_id: int, requester_id: int, help_request_id: Optional[int] = None
    ) -> ServiceResult:
        try:
            donation = self._find_donation(session, donation_id, help_request_id)
            if donation is None:
                return ServiceResult.fail("Donation not found", ErrorKind.NOT_FOUND)
            if donation.donator_id != requester_id:
                return ServiceResult.fail(
                    "Only the donator can mark this donation as scheduled", ErrorKind.FORBIDDEN
                )
            donation = self.donation_dao.mark_as_scheduled(session, donation_id)
        except SQLAlchemyError:
            return _store_failure(session, f"DonationService.mark_as_scheduled ({donation_id})", "Failed to mark donation as scheduled")
        return ServiceResult.ok(DonationRead.model_validate(donation), "Donation marked as scheduled")

    def mark_as_completed_by_donator(
        self, session: Session, donation_id: int, requester_id: int, help_request_id: Optional[int] = None
    ) -> ServiceResult:
        # scheduling first is a UI convention only, not checked here
        try:
            donation = self._find_donation(session, donation_id, help_request_id)
            if donation is None:
                return ServiceResult.fail("Donation not found", ErrorKind.NOT_FOUND)
            if donation.donator_id != requester_id:
                return ServiceResult.fail(
                    "Only the donator can mark this donation as completed", ErrorKind.FORBIDDEN
                )
            donation = self.donation_dao.mark_as_completed_by_donator(session, donation_id)
        except SQLAlchemyError:
            return _store_failure(session, f"DonationService.mark_as_completed_by_donator ({donation_id})", "Failed to mark donation as completed")
        return ServiceResult.ok(DonationRead.model_validate(donation), "Donation marked as completed")

    def mark_as_completed_by_owner(
        self, session: Session, donation_id: int, requester_id: int, help_request_id: Optional[int] = None
    ) -> ServiceResult:
        try:
            donation = self._find_donation(session, donation_id, help_request_id)
            if donation is None:
                return ServiceResult.fail("Donation not found", ErrorKind.NOT_FOUND)
            help_request = self.help_request_dao.find_by_id(session, donation.help_request_id)
            if help_request is None:
                return ServiceResult.fail("Help request not found", ErrorKind.NOT_FOUND)
            if help_request.user_id is None or help_request.user_id != requester_id:
                return ServiceResult.fail(
                    "Only the help request owner can mark this donation as completed",
                    ErrorKind.FORBIDDEN,
                )
            donation = self.donation_dao.mark_as_completed_by_owner(session, donation_id)
        except SQLAlchemyError:
            return _store_failure(session, f"DonationService.mark_as_completed_by_owner ({donation_id})", "Failed to mark donation as completed")
        return ServiceResult.ok(DonationRead.model_validate(donation), "Donation marked as completed")


class ItemService:
    def __init__(self, item_dao: ItemDao) -> None:
        self.item_dao = item_dao

    def get_all_items(self, session: Session) -> ServiceResult:
        try:
            items = self.item_dao.find_all(session)
        except SQLAlchemyError:
            return _store_failure(session, "ItemService.get_all_items", "Failed to retrieve items")
        return ServiceResult.ok([ItemRead.model_validate(i) for i in items])

    def get_item_by_id(self, session: Session, item_id: int) -> ServiceResult:
        try:
            item = self.item_dao.find_by_id(session, item_id)
        except SQLAlchemyError:
            return _store_failure(session, f"ItemService.get_item_by_id ({item_id})", "Failed to retrieve item")
        if item is None:
            return ServiceResult.fail("Item not found", ErrorKind.NOT_FOUND)
        return ServiceResult.ok(ItemRead.model_validate(item))

    def create_item(self, session: Session, data: ItemCreate) -> ServiceResult:
        try:
            item = self.item_dao.create(session, data)
        except SQLAlchemyError:
            return _store_failure(session, "ItemService.create_item", "Failed to create item")
        return ServiceResult.ok(ItemRead.model_validate(item), "Item created successfully")

    def update_item(self, session: Session, item_id: int, data: ItemUpdate) -> ServiceResult:
        try:
            item = self.item_dao.update(session, item_id, data)
        except SQLAlchemyError:
            return _store_failure(session, f"ItemService.update_item ({item_id})", "Failed to update item")
        if item is None:
            return ServiceResult.fail("Item not found", ErrorKind.NOT_FOUND)
        return ServiceResult.ok(ItemRead.model_validate(item), "Item updated successfully")

    def delete_item(self, session: Session, item_id: int) -> ServiceResult:
        try:
            deleted = self.item_dao.delete(session, item_id)
        except SQLAlchemyError:
            return _store_failure(session, f"ItemService.delete_item ({item_id})", "Failed to delete item")
        if not deleted:
            return ServiceResult.fail("Item not found", ErrorKind.NOT_FOUND)
        return ServiceResult.ok(None, "Item deleted successfully")


@dataclass
class Services:
    users: UserService
    help_requests: HelpRequestService
    donations: DonationService
    items: ItemService


def build_services(settings: Settings) -> Services:
    """Wire DAOs and services once per process."""
    user_dao = UserDao()
    help_request_dao = HelpRequestDao(active_window_days=settings.active_window_days)
    return Services(
        users=UserService(user_dao, RefreshTokenDao(), settings.refresh_token_days),
        help_requests=HelpRequestService(help_request_dao),
        donations=DonationService(DonationDao(), help_request_dao),
        items=ItemService(ItemDao()),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


ServicesDep = Annotated[Services, Depends(get_services)]
