# Overview: Service-layer operations for stores and their GST settings.

from __future__ import annotations

from flask import current_app

from stockline.extensions import db
from stockline.errors import NotFoundError
from stockline.models import Store, StoreTaxSettings
from stockline.services.concurrency import lock_for_update, run_with_retry
from stockline.validation import ConflictError, ValidationError


def _name_taken(name: str, exclude_id: int | None = None) -> bool:
    query = db.session.query(Store.id).filter(Store.name == name)
    if exclude_id is not None:
        query = query.filter(Store.id != exclude_id)
    return query.first() is not None


def create_store(name: str, location: str | None = None) -> Store:
    """Create a store together with its default GST settings."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("Store name is required")

    def _op():
        if _name_taken(name):
            raise ConflictError(f"Store name already exists: {name}")

        store = Store(name=name, location=(location or "").strip())
        db.session.add(store)
        db.session.flush()

        db.session.add(StoreTaxSettings(
            store_id=store.id,
            gst_rate_bps=current_app.config.get("DEFAULT_GST_RATE_BPS", 1800),
            is_gst_enabled=True,
        ))
        db.session.commit()
        return store

    return run_with_retry(_op)


def update_store(
    store_id: int,
    *,
    name: str | None = None,
    location: str | None = None,
    is_active: bool | None = None,
) -> Store:
    def _op():
        store = lock_for_update(db.session.query(Store).filter_by(id=store_id)).first()
        if not store:
            raise NotFoundError("Store not found", details={"store_id": store_id})

        if name is not None:
            cleaned = name.strip()
            if not cleaned:
                raise ValidationError("Store name cannot be blank")
            if _name_taken(cleaned, exclude_id=store_id):
                raise ConflictError(f"Store name already exists: {cleaned}")
            store.name = cleaned
        if location is not None:
            store.location = location.strip()
        if is_active is not None:
            store.is_active = bool(is_active)

        db.session.commit()
        return store

    return run_with_retry(_op)


def get_store(store_id: int) -> Store | None:
    return db.session.query(Store).filter_by(id=store_id).first()


def require_active_store(store_id: int) -> Store:
    """Store lookup for operations that move stock or money."""
    store = get_store(store_id)
    if not store or not store.is_active:
        raise NotFoundError("Store not found", details={"store_id": store_id})
    return store


def list_stores(include_inactive: bool = False) -> list[Store]:
    query = db.session.query(Store)
    if not include_inactive:
        query = query.filter(Store.is_active.is_(True))
    return query.order_by(Store.name.asc()).all()


def get_tax_settings(store_id: int) -> StoreTaxSettings:
    """Tax settings for a store; created from the configured default on first read."""
    settings = db.session.query(StoreTaxSettings).filter_by(store_id=store_id).first()
    if settings:
        return settings

    if not get_store(store_id):
        raise NotFoundError("Store not found", details={"store_id": store_id})

    settings = StoreTaxSettings(
        store_id=store_id,
        gst_rate_bps=current_app.config.get("DEFAULT_GST_RATE_BPS", 1800),
        is_gst_enabled=True,
    )
    db.session.add(settings)
    db.session.commit()
    return settings


def update_tax_settings(store_id: int, patch: dict) -> StoreTaxSettings:
    """Apply an already-validated patch (gst_rate_bps, gst_number, is_gst_enabled)."""
    settings = get_tax_settings(store_id)

    def _op():
        for key in ("gst_rate_bps", "gst_number", "is_gst_enabled"):
            if key in patch:
                setattr(settings, key, patch[key])
        db.session.commit()
        return settings

    return run_with_retry(_op)
