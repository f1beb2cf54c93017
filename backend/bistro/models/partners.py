from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Partner(db.Model):
    """
    Customer or supplier.

    account_id points at the partner's own sub-account, created lazily under
    the customers (1141) or suppliers (2111) control account the first time a
    credit document is posted for the partner.
    """
    __tablename__ = "partners"
    __table_args__ = (
        db.Index("ix_partners_type", "type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    name_en = db.Column(db.String(255), nullable=True)
    type = db.Column(db.String(16), nullable=False, default="customer")
    phone = db.Column(db.String(64), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    tax_number = db.Column(db.String(64), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="active")
    branch = db.Column(db.String(64), nullable=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    account = db.relationship("Account")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "name_en": self.name_en,
            "type": self.type,
            "phone": self.phone,
            "email": self.email,
            "tax_number": self.tax_number,
            "status": self.status,
            "branch": self.branch,
            "account_id": self.account_id,
            "created_at": to_utc_z(self.created_at),
        }
