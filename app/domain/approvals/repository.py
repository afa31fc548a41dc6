"""Client approval repository"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import ClientApproval


class ApprovalRepository:
    """Repository for client approval database operations"""

    @staticmethod
    def _query(db: Session):
        return db.query(ClientApproval).options(joinedload(ClientApproval.booking))

    @staticmethod
    def get_by_id(db: Session, approval_id: str) -> Optional[ClientApproval]:
        return ApprovalRepository._query(db).filter(ClientApproval.id == approval_id).first()

    @staticmethod
    def get_by_token(db: Session, token: str) -> Optional[ClientApproval]:
        return (
            ApprovalRepository._query(db)
            .filter(ClientApproval.client_approval_token == token)
            .first()
        )

    @staticmethod
    def get_by_poli_transaction(db: Session, transaction_token: str) -> Optional[ClientApproval]:
        return (
            ApprovalRepository._query(db)
            .filter(ClientApproval.poli_transaction_id == transaction_token)
            .first()
        )

    @staticmethod
    def get_by_balance_token(db: Session, token: str) -> Optional[ClientApproval]:
        return (
            ApprovalRepository._query(db)
            .filter(ClientApproval.balance_payment_token == token)
            .first()
        )

    @staticmethod
    def upsert_for_booking(db: Session, booking_id: str, **fields) -> ClientApproval:
        """One approval row per booking; re-sending a quote updates it in place (caller commits)"""
        approval = db.query(ClientApproval).filter(ClientApproval.booking_id == booking_id).first()
        if approval is None:
            approval = ClientApproval(booking_id=booking_id, **fields)
            db.add(approval)
        else:
            for key, value in fields.items():
                setattr(approval, key, value)
        db.flush()
        return approval
