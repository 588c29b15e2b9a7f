from __future__ import annotations

from ..extensions import db
from stockline.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer identified by phone number.

    Looked up at checkout to attach identity to an invoice, and at the
    returns desk to list eligible invoices.
    """
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    phone = db.Column(db.String(32), nullable=False, unique=True, index=True)
    name = db.Column(db.String(160), nullable=False)
    email = db.Column(db.String(255), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "phone": self.phone,
            "name": self.name,
            "email": self.email,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
