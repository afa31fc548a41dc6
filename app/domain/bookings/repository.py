"""Booking repository - Database operations for bookings"""

from datetime import date
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from ...models import Booking, ContractorAssignment, generate_quote_number

SORT_FIELDS = {
    "event_date": Booking.event_date,
    "created_at": Booking.created_at,
    "client_name": Booking.client_name,
    "status": Booking.status,
}


def escape_like(value: str) -> str:
    """Match % and _ literally in a LIKE pattern"""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def get_by_id(db: Session, booking_id: str) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.id == booking_id).first()

    @staticmethod
    def get_with_details(db: Session, booking_id: str) -> Optional[Booking]:
        """Booking with assignments, their contractors and the client approval loaded"""
        return (
            db.query(Booking)
            .options(
                joinedload(Booking.assignments).joinedload(ContractorAssignment.contractor),
                joinedload(Booking.client_approval),
            )
            .filter(Booking.id == booking_id)
            .first()
        )

    @staticmethod
    def get_by_approval_token(db: Session, token: str) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.approval_token == token).first()

    @staticmethod
    def get_by_link_token(db: Session, token: str) -> Optional[Booking]:
        """Contractor selection token first, then the broadcast contractor token"""
        booking = db.query(Booking).filter(Booking.contractor_selection_token == token).first()
        if booking:
            return booking
        return db.query(Booking).filter(Booking.contractor_token == token).first()

    @staticmethod
    def get_by_contractor_token(db: Session, token: str) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.contractor_token == token).first()

    @staticmethod
    def get_for_selection(db: Session, token: str) -> Optional[Booking]:
        """Selection token, or the approval token when the owner skipped client approval"""
        booking = db.query(Booking).filter(Booking.contractor_selection_token == token).first()
        if booking:
            return booking
        return BookingRepository.get_by_approval_token(db, token)

    @staticmethod
    def get_by_ids(db: Session, booking_ids: list[str]) -> list[Booking]:
        return db.query(Booking).filter(Booking.id.in_(booking_ids)).all()

    @staticmethod
    def quote_number_exists(db: Session, quote_number: str) -> bool:
        return db.query(Booking.id).filter(Booking.quote_number == quote_number).first() is not None

    @staticmethod
    def unique_quote_number(db: Session) -> str:
        quote_number = generate_quote_number()
        while BookingRepository.quote_number_exists(db, quote_number):
            quote_number = generate_quote_number()
        return quote_number

    @staticmethod
    def search(
        db: Session,
        status: Optional[str] = None,
        search: Optional[str] = None,
        client: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        sort: str = "event_date",
        order: str = "desc",
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[Booking], int]:
        """
        Filtered, sorted page of bookings.
        Returns (bookings, total matching rows before paging)
        """
        query = db.query(Booking)

        if status:
            query = query.filter(Booking.status == status)
        if search:
            pattern = f"%{escape_like(search.lower())}%"
            query = query.filter(
                or_(
                    func.lower(Booking.event_name).like(pattern, escape="\\"),
                    func.lower(Booking.client_name).like(pattern, escape="\\"),
                    func.lower(Booking.quote_number).like(pattern, escape="\\"),
                )
            )
        if client:
            client_pattern = f"%{escape_like(client.lower())}%"
            query = query.filter(func.lower(Booking.client_name).like(client_pattern, escape="\\"))
        if date_from:
            query = query.filter(Booking.event_date >= date_from)
        if date_to:
            query = query.filter(Booking.event_date <= date_to)

        total = query.count()

        column = SORT_FIELDS.get(sort, Booking.event_date)
        query = query.order_by(column.asc() if order == "asc" else column.desc())

        return query.offset(offset).limit(limit).all(), total

    @staticmethod
    def status_summary(db: Session) -> dict[str, int]:
        rows = db.query(Booking.status, func.count(Booking.id)).group_by(Booking.status).all()
        return {status: count for status, count in rows}

    @staticmethod
    def unique_clients(db: Session) -> list[dict]:
        """One entry per client email, keeping the first name seen"""
        rows = (
            db.query(Booking.client_name, Booking.client_email)
            .order_by(Booking.client_name.asc())
            .all()
        )
        clients: dict[str, dict] = {}
        for name, email in rows:
            key = (email or "").lower()
            if key and key not in clients:
                clients[key] = {"name": name, "email": email}
        return list(clients.values())

    @staticmethod
    def create(db: Session, **booking_data) -> Booking:
        booking = Booking(**booking_data)
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    @staticmethod
    def update(db: Session, booking: Booking, **updates) -> Booking:
        for key, value in updates.items():
            if hasattr(booking, key):
                setattr(booking, key, value)
        db.commit()
        db.refresh(booking)
        return booking

    @staticmethod
    def delete_many(db: Session, bookings: list[Booking]) -> int:
        for booking in bookings:
            db.delete(booking)
        db.commit()
        return len(bookings)
