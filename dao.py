"""
Data-access objects.

Each DAO is a stateless object built once at startup; every method receives
the request's Session, so nothing here holds a connection between calls.
"""
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.pool import StaticPool
from sqlmodel import Session, col, func, select

from enums import HelpRequestStatus, Urgency, UserRole
from models import Donation, HelpRequest, Item, RefreshToken, User, utcnow
from schemas import HelpRequestCreate, ItemCreate, ItemUpdate
from security import hash_password


def _to_int(value) -> int:
    """Aggregates may come back as text, Decimal or None depending on the driver."""
    if value is None:
        return 0
    if isinstance(value, str):
        return int(value) if value.strip() else 0
    return int(value)


def _like_escape(text: str) -> str:
    """Make LIKE wildcards in user input match literally (escape char is a backslash)."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _run_concurrently(session: Session, queries: Dict[str, Callable[[Session], Any]]) -> Dict[str, Any]:
    """
    Run independent read queries side by side, each on its own Session bound
    to the same engine, and return their results by name.
    """
    bind = session.get_bind()
    if isinstance(getattr(bind, "pool", None), StaticPool):
        # a single shared connection cannot serve parallel queries
        return {name: query(session) for name, query in queries.items()}

    def run(query: Callable[[Session], Any]) -> Any:
        with Session(bind) as own_session:
            return query(own_session)

    with ThreadPoolExecutor(max_workers=len(queries)) as executor:
        futures = {name: executor.submit(run, query) for name, query in queries.items()}
        return {name: future.result() for name, future in futures.items()}


class UserDao:
    def find_by_id(self, session: Session, user_id: int) -> Optional[User]:
        return session.get(User, user_id)

    def find_by_username(self, session: Session, username: str) -> Optional[User]:
        return session.exec(select(User).where(User.username == username)).first()

    def create(
        self,
        session: Session,
        username: str,
        password: Optional[str] = None,
        role: UserRole = UserRole.USER,
        contact_number: Optional[str] = None,
    ) -> User:
        user = User(
            username=username,
            password_hash=hash_password(password) if password else None,
            contact_number=contact_number,
            role=role.value,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user


class RefreshTokenDao:
    def create(
        self, session: Session, user_id: int, token: str, expires_at: datetime
    ) -> RefreshToken:
        row = RefreshToken(user_id=user_id, token=token, expires_at=expires_at)
        session.add(row)
        session.commit()
        session.refresh(row)
        return row

    def find_valid(self, session: Session, token: str) -> Optional[RefreshToken]:
        return session.exec(
            select(RefreshToken).where(
                RefreshToken.token == token,
                RefreshToken.expires_at > utcnow(),
            )
        ).first()

    def delete(self, session: Session, token: str) -> bool:
        row = session.exec(select(RefreshToken).where(RefreshToken.token == token)).first()
        if row is None:
            return False
        session.delete(row)
        session.commit()
        return True


class HelpRequestDao:
    def __init__(self, active_window_days: int = 30) -> None:
        self.active_window_days = active_window_days

    def window_start(self) -> datetime:
        """Oldest creation time still considered active, computed per call."""
        return utcnow() - timedelta(days=self.active_window_days)

    def find_all(
        self,
        session: Session,
        urgency: Optional[Urgency] = None,
        district: Optional[str] = None,
    ) -> List[HelpRequest]:
        query = select(HelpRequest).where(
            HelpRequest.created_at >= self.window_start(),
            HelpRequest.status == HelpRequestStatus.OPEN.value,
        )
        if urgency:
            query = query.where(HelpRequest.urgency == Urgency(urgency).value)
        if district:
            query = query.where(
                col(HelpRequest.approx_area).ilike(f"%{_like_escape(district)}%", escape="\\")
            )

        query = query.order_by(col(HelpRequest.created_at).desc(), col(HelpRequest.id).desc())
        return list(session.exec(query).all())

    def find_by_id(self, session: Session, help_request_id: int) -> Optional[HelpRequest]:
        return session.get(HelpRequest, help_request_id)

    def create(
        self, session: Session, data: HelpRequestCreate, user_id: Optional[int] = None
    ) -> HelpRequest:
        help_request = HelpRequest(
            user_id=user_id,
            lat=data.lat,
            lng=data.lng,
            urgency=data.urgency.value,
            short_note=data.short_note,
            approx_area=data.approx_area,
            contact_type=data.contact_type.value,
            contact=data.contact,
            name=data.name,
            total_people=data.total_people,
            elders=data.elders,
            children=data.children,
            pets=data.pets,
            ration_items=list(data.ration_items),
            status=HelpRequestStatus.OPEN.value,
        )
        session.add(help_request)
        session.commit()
        session.refresh(help_request)
        return help_request

    def count(self, session: Session) -> int:
        return session.exec(
            select(func.count())
            .select_from(HelpRequest)
            .where(
                HelpRequest.created_at >= self.window_start(),
                HelpRequest.status == HelpRequestStatus.OPEN.value,
            )
        ).one()

    def get_summary(self, session: Session) -> dict:
        """
        Aggregate every request created inside the active window, whatever its
        status. The six queries are independent of each other and are issued
        concurrently, then joined.
        """
        active = HelpRequest.created_at >= self.window_start()

        queries: Dict[str, Callable[[Session], Any]] = {
            "total": lambda s: s.exec(
                select(func.count()).select_from(HelpRequest).where(active)
            ).one(),
            "urgency": lambda s: s.exec(
                select(HelpRequest.urgency, func.count())
                .where(active)
                .group_by(HelpRequest.urgency)
            ).all(),
            "status": lambda s: s.exec(
                select(HelpRequest.status, func.count())
                .where(active)
                .group_by(HelpRequest.status)
            ).all(),
            "district": lambda s: s.exec(
                select(HelpRequest.approx_area, func.count())
                .where(active)
                .group_by(HelpRequest.approx_area)
            ).all(),
            "people": lambda s: s.exec(
                select(
                    func.coalesce(func.sum(HelpRequest.total_people), 0),
                    func.coalesce(func.sum(HelpRequest.elders), 0),
                    func.coalesce(func.sum(HelpRequest.children), 0),
                    func.coalesce(func.sum(HelpRequest.pets), 0),
                ).where(active)
            ).first(),
            "ration": lambda s: s.exec(select(HelpRequest.ration_items).where(active)).all(),
        }
        results = _run_concurrently(session, queries)

        total = results["total"]
        urgency_rows = results["urgency"]
        status_rows = results["status"]
        district_rows = results["district"]
        people_row = results["people"]
        ration_rows = results["ration"]

        by_urgency = {u.value: 0 for u in Urgency}
        for urgency, count in urgency_rows:
            if urgency in by_urgency:
                by_urgency[urgency] = _to_int(count)

        by_status = {s.value: 0 for s in HelpRequestStatus}
        for status, count in status_rows:
            if status in by_status:
                by_status[status] = _to_int(count)

        by_district: Dict[str, int] = {}
        for area, count in district_rows:
            if area:
                by_district[area] = _to_int(count)

        people = (0, 0, 0, 0) if people_row is None else people_row
        total_people, elders, children, pets = (_to_int(v) for v in people)

        ration_items: Dict[str, int] = {}
        for items in ration_rows:
            for item_id in dict.fromkeys(items or []):
                ration_items[item_id] = ration_items.get(item_id, 0) + 1

        return {
            "total": _to_int(total),
            "by_urgency": by_urgency,
            "by_status": by_status,
            "by_district": by_district,
            "people": {
                "total_people": total_people,
                "elders": elders,
                "children": children,
                "pets": pets,
            },
            "ration_items": ration_items,
        }


class DonationDao:
    def find_by_help_request_id(
        self, session: Session, help_request_id: int
    ) -> List[Tuple[Donation, User]]:
        stmt = (
            select(Donation, User)
            .join(User, User.id == Donation.donator_id)
            .where(Donation.help_request_id == help_request_id)
            .order_by(col(Donation.created_at).desc(), col(Donation.id).desc())
        )
        return list(session.exec(stmt).all())

    def find_by_id(self, session: Session, donation_id: int) -> Optional[Donation]:
        return session.get(Donation, donation_id)

    def create(
        self,
        session: Session,
        help_request_id: int,
        donator_id: int,
        ration_items: Dict[str, int],
    ) -> Donation:
        donation = Donation(
            help_request_id=help_request_id,
            donator_id=donator_id,
            ration_items=dict(ration_items),
            donator_marked_scheduled=False,
            donator_marked_completed=False,
            owner_marked_completed=False,
        )
        session.add(donation)
        session.commit()
        session.refresh(donation)
        return donation

    def _set_flag(self, session: Session, donation_id: int, flag: str) -> Optional[Donation]:
        donation = session.get(Donation, donation_id)
        if donation is None:
            return None
        # flags only ever move to True
        setattr(donation, flag, True)
        donation.updated_at = utcnow()
        session.add(donation)
        session.commit()
        session.refresh(donation)
        return donation

    def mark_as_scheduled(self, session: Session, donation_id: int) -> Optional[Donation]:
        return self._set_flag(session, donation_id, "donator_marked_scheduled")

    def mark_as_completed_by_donator(
        self, session: Session, donation_id: int
    ) -> Optional[Donation]:
        return self._set_flag(session, donation_id, "donator_marked_completed")

    def mark_as_completed_by_owner(
        self, session: Session, donation_id: int
    ) -> Optional[Donation]:
        return self._set_flag(session, donation_id, "owner_marked_completed")


class ItemDao:
    def find_all(self, session: Session) -> List[Item]:
        return list(session.exec(select(Item).order_by(col(Item.name))).all())

    def find_by_id(self, session: Session, item_id: int) -> Optional[Item]:
        return session.get(Item, item_id)

    def create(self, session: Session, data: ItemCreate) -> Item:
        item = Item(name=data.name, description=data.description)
        session.add(item)
        session.commit()
        session.refresh(item)
        return item

    def update(self, session: Session, item_id: int, data: ItemUpdate) -> Optional[Item]:
        item = session.get(Item, item_id)
        if item is None:
            return None
        for field, value in data.model_dump(exclude_unset=True).items():
            if field == "name" and value is None:
                continue
            setattr(item, field, value)
        item.updated_at = utcnow()
        session.add(item)
        session.commit()
        session.refresh(item)
        return item

    def delete(self, session: Session, item_id: int) -> bool:
        item = session.get(Item, item_id)
        if item is None:
            return False
        session.delete(item)
        session.commit()
        return True
