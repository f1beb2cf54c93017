from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


ACCOUNT_TYPES = ("asset", "cash", "bank", "liability", "equity", "revenue", "expense", "system")
ACCOUNT_NATURES = ("debit", "credit")


class Account(db.Model):
    """
    Chart-of-accounts node.

    Accounts form a tree through parent_id. Top-level groups (0001 Assets,
    0002 Liabilities, ...) have no parent. Partner sub-accounts hang under the
    customers (1141) or suppliers (2111) control accounts.

    account_number and account_code carry the same value for seeded accounts;
    older rows may have only one of them filled (see `accounts fix-codes`).
    """
    __tablename__ = "accounts"
    __table_args__ = (
        db.UniqueConstraint("account_number", name="uq_accounts_number"),
        db.UniqueConstraint("account_code", name="uq_accounts_code"),
        db.Index("ix_accounts_parent", "parent_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_number = db.Column(db.String(32), nullable=True)
    account_code = db.Column(db.String(32), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    name_en = db.Column(db.String(255), nullable=True)
    type = db.Column(db.String(16), nullable=False, default="asset")
    nature = db.Column(db.String(8), nullable=False, default="debit")
    parent_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=True)
    opening_balance = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    allow_manual_entry = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    parent = db.relationship("Account", remote_side=[id], backref=db.backref("children", lazy=True))

    @property
    def code(self) -> str | None:
        return self.account_code or self.account_number

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_number": self.account_number,
            "account_code": self.account_code,
            "name": self.name,
            "name_en": self.name_en,
            "type": self.type,
            "nature": self.nature,
            "parent_id": self.parent_id,
            "opening_balance": float(self.opening_balance or 0),
            "allow_manual_entry": self.allow_manual_entry,
            "created_at": to_utc_z(self.created_at),
        }
