"""Inquiry repository - Database operations for inquiries"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Inquiry


class InquiryRepository:
    """Repository for inquiry database operations"""

    @staticmethod
    def create(db: Session, **inquiry_data) -> Inquiry:
        inquiry = Inquiry(**inquiry_data)
        db.add(inquiry)
        db.commit()
        db.refresh(inquiry)
        return inquiry

    @staticmethod
    def get_by_id(db: Session, inquiry_id: str) -> Optional[Inquiry]:
        return db.query(Inquiry).filter(Inquiry.id == inquiry_id).first()

    @staticmethod
    def set_status(db: Session, inquiry: Inquiry, status: str, **fields) -> Inquiry:
        inquiry.status = status
        for key, value in fields.items():
            setattr(inquiry, key, value)
        db.commit()
        db.refresh(inquiry)
        return inquiry
