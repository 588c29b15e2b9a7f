# Overview: Service-layer operations for customers, keyed by phone number.

from __future__ import annotations

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from stockline.extensions import db
from stockline.errors import ConcurrencyConflictError, NotFoundError
from stockline.models import Customer, Invoice
from stockline.services.concurrency import run_with_retry
from stockline.validation import ConflictError, ValidationError


def normalize_phone(phone) -> str:
    value = "".join(str(phone or "").split())
    if not value:
        raise ValidationError("phone is required")
    return value


def find_by_phone(phone) -> Customer | None:
    return db.session.query(Customer).filter_by(phone=normalize_phone(phone)).first()


def get_customer_by_phone(phone) -> Customer:
    customer = find_by_phone(phone)
    if not customer:
        raise NotFoundError("Customer not found", details={"phone": phone})
    return customer


def get_customer(customer_id: int) -> Customer:
    customer = db.session.query(Customer).filter_by(id=customer_id).first()
    if not customer:
        raise NotFoundError("Customer not found", details={"customer_id": customer_id})
    return customer


def attach_customer(phone, name: str | None = None, email: str | None = None) -> Customer | None:
    """
    Checkout side effect, inside the caller's transaction.

    Existing phone: reuse the record, refreshing name/email when given.
    Unknown phone: create a record, which needs a name.
    """
    if not phone:
        return None
    phone = normalize_phone(phone)
    name = (name or "").strip() or None
    email = (email or "").strip() or None

    customer = find_by_phone(phone)
    if customer:
        if name:
            customer.name = name
        if email:
            customer.email = email
        db.session.flush()
        return customer

    if not name:
        raise ValidationError("customer_name is required for a new customer")
    customer = Customer(phone=phone, name=name, email=email)
    db.session.add(customer)
    try:
        db.session.flush()
    except IntegrityError as exc:
        # Phone taken by a concurrent checkout
        raise ConcurrencyConflictError(
            "Customer created concurrently",
            details={"phone": phone},
        ) from exc
    return customer


def create_customer(phone, name: str, email: str | None = None) -> Customer:
    phone = normalize_phone(phone)

    def _op():
        if db.session.query(Customer.id).filter_by(phone=phone).first():
            raise ConflictError(f"Customer already exists for phone: {phone}")
        customer = attach_customer(phone, name, email)
        db.session.commit()
        return customer

    return run_with_retry(_op)


def list_customers(search: str | None = None, limit: int = 100) -> list[Customer]:
    query = db.session.query(Customer)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Customer.name.ilike(pattern), Customer.phone.ilike(pattern)))
    limit = max(1, min(limit, 500))
    return query.order_by(Customer.name.asc()).limit(limit).all()


def customer_invoices(customer_id: int) -> list[Invoice]:
    """Purchase history, newest first."""
    get_customer(customer_id)
    return (
        db.session.query(Invoice)
        .filter(Invoice.customer_id == customer_id)
        .order_by(Invoice.created_at.desc(), Invoice.id.desc())
        .all()
    )
