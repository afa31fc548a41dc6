"""Contractor repository - Database operations for contractors and assignments"""

from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session, joinedload

from ...models import Booking, Contractor, ContractorAssignment


class ContractorRepository:
    """Repository for contractor and assignment database operations"""

    # ------------------------------------------------------------------
    # Contractors
    # ------------------------------------------------------------------

    @staticmethod
    def list_all(db: Session, active_only: bool = False) -> list[Contractor]:
        query = db.query(Contractor)
        if active_only:
            query = query.filter(Contractor.active.is_(True))
        return query.order_by(Contractor.name.asc()).all()

    @staticmethod
    def list_active(db: Session) -> list[Contractor]:
        return ContractorRepository.list_all(db, active_only=True)

    @staticmethod
    def get_by_id(db: Session, contractor_id: str) -> Optional[Contractor]:
        return db.query(Contractor).filter(Contractor.id == contractor_id).first()

    @staticmethod
    def get_by_email(db: Session, email: str) -> Optional[Contractor]:
        return db.query(Contractor).filter(Contractor.email == email).first()

    @staticmethod
    def create(db: Session, **contractor_data) -> Contractor:
        contractor = Contractor(**contractor_data)
        db.add(contractor)
        db.commit()
        db.refresh(contractor)
        return contractor

    @staticmethod
    def update(db: Session, contractor: Contractor, **updates) -> Contractor:
        for key, value in updates.items():
            if hasattr(contractor, key):
                setattr(contractor, key, value)
        db.commit()
        db.refresh(contractor)
        return contractor

    # ------------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------------

    @staticmethod
    def get_assignment(db: Session, assignment_id: str) -> Optional[ContractorAssignment]:
        return db.query(ContractorAssignment).filter(ContractorAssignment.id == assignment_id).first()

    @staticmethod
    def get_assignment_by_token(db: Session, token: str) -> Optional[ContractorAssignment]:
        return (
            db.query(ContractorAssignment)
            .options(joinedload(ContractorAssignment.contractor), joinedload(ContractorAssignment.booking))
            .filter(ContractorAssignment.assignment_token == token)
            .first()
        )

    @staticmethod
    def get_assignment_by_payment_token(db: Session, token: str) -> Optional[ContractorAssignment]:
        return (
            db.query(ContractorAssignment)
            .options(joinedload(ContractorAssignment.contractor), joinedload(ContractorAssignment.booking))
            .filter(ContractorAssignment.payment_token == token)
            .first()
        )

    @staticmethod
    def replace_assignments(db: Session, booking: Booking, assignments: list[dict]) -> list[ContractorAssignment]:
        """
        Replace the booking's crew selection (caller commits). Contractors who
        already accepted and are selected again keep their accepted assignment.
        """
        selected = {data["contractor_id"] for data in assignments}
        kept = {}
        for existing in list(booking.assignments):
            if existing.status == "accepted" and existing.contractor_id in selected:
                kept[existing.contractor_id] = existing
            else:
                booking.assignments.remove(existing)
        db.flush()

        rows = []
        for data in assignments:
            if data["contractor_id"] in kept:
                rows.append(kept[data["contractor_id"]])
                continue
            row = ContractorAssignment(**data)
            booking.assignments.append(row)
            rows.append(row)
        db.flush()
        return rows

    @staticmethod
    def pending_assignments(db: Session, booking_id: str) -> list[ContractorAssignment]:
        return (
            db.query(ContractorAssignment)
            .options(joinedload(ContractorAssignment.contractor))
            .filter(
                ContractorAssignment.booking_id == booking_id,
                ContractorAssignment.status == "pending",
            )
            .all()
        )

    @staticmethod
    def claim_response(db: Session, assignment: ContractorAssignment, new_status: str, **fields) -> bool:
        """
        Record a contractor's answer only if the assignment is still unanswered.
        Returns False when another request answered first.
        """
        result = db.execute(
            update(ContractorAssignment)
            .where(
                ContractorAssignment.id == assignment.id,
                ContractorAssignment.status.in_(["pending", "notified"]),
            )
            .values(status=new_status, **fields)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        db.refresh(assignment)
        return True

    @staticmethod
    def lock_booking(db: Session, booking_id: str) -> Optional[Booking]:
        """SELECT ... FOR UPDATE on the booking row (no-op lock on SQLite)"""
        booking = db.query(Booking).filter(Booking.id == booking_id).with_for_update().first()
        if booking is not None:
            db.refresh(booking)
        return booking

    @staticmethod
    def booking_assignment_statuses(db: Session, booking_id: str) -> list[str]:
        rows = (
            db.query(ContractorAssignment.status)
            .filter(ContractorAssignment.booking_id == booking_id)
            .all()
        )
        return [status for (status,) in rows]
