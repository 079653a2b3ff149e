"""Map external customers onto local ``User`` rows, creating them on first sight."""

from __future__ import annotations

from typing import Optional, Tuple

from flask import current_app
from sqlalchemy.exc import IntegrityError

from errors import ConflictError, NotFoundError, ServiceUnavailableError, ValidationError
from extensions import db
from models import User
from transactions import atomic

from .shopify import CustomerProfile


def login_with_email(email: Optional[str]) -> Tuple[User, bool]:
    cleaned = _normalize_email(email)
    profile = _provider().find_customer_by_email(cleaned)
    if not profile:
        raise NotFoundError("Customer not found", payload={"error": "customer_not_found"})
    return resolve_user(profile)


def sync_customer(customer_id: str) -> Tuple[User, bool]:
    profile = _provider().get_customer(customer_id)
    if not profile:
        raise NotFoundError("Customer not found", payload={"error": "customer_not_found"})
    return resolve_user(profile)


def resolve_user(profile: CustomerProfile) -> Tuple[User, bool]:
    """Return ``(user, created)`` for an external customer profile."""
    user = User.query.filter_by(shopify_customer_id=profile.customer_id).first()
    if user:
        return user, False

    shop_domain = current_app.config.get("SHOPIFY_STORE_DOMAIN")
    email = profile.email.lower()
    try:
        with atomic(f"linking customer {profile.customer_id}"):
            # An account created by email before the first store login gets linked, not duplicated.
            user = User.query.filter_by(email=email).first() if email else None
            created = user is None
            if created:
                user = User(email=email or f"{profile.customer_id}@customers.invalid", points=0)
                db.session.add(user)
            user.shopify_customer_id = profile.customer_id
            user.shopify_shop_domain = shop_domain
            user.name = profile.display_name or user.name or email
            user.avatar_url = profile.avatar_url or user.avatar_url
            try:
                db.session.flush()
            except IntegrityError as exc:
                raise ConflictError("Customer already linked", payload={"error": "customer_linked"}) from exc
    except ConflictError:
        # A concurrent login created the row first.
        existing = User.query.filter_by(shopify_customer_id=profile.customer_id).first()
        if not existing:
            raise
        return existing, False

    if created:
        current_app.logger.info("Created user %s for customer %s", user.id, profile.customer_id)
    return user, created


def create_user(email: Optional[str], name: Optional[str]) -> User:
    cleaned = _normalize_email(email)
    display_name = (name or "").strip()
    if not display_name:
        raise ValidationError("Email and name are required", payload={"error": "missing_fields"})
    if User.query.filter_by(email=cleaned).first():
        raise ConflictError("User already exists", payload={"error": "user_exists"})

    user = User(email=cleaned, name=display_name, points=0)
    with atomic(f"creating user {cleaned}"):
        db.session.add(user)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise ConflictError("User already exists", payload={"error": "user_exists"}) from exc
    return user


def get_user_by_email(email: str) -> User:
    user = User.query.filter_by(email=_normalize_email(email)).first()
    if not user:
        raise NotFoundError("User not found", payload={"error": "user_not_found"})
    return user


def _normalize_email(email: Optional[str]) -> str:
    cleaned = (email or "").strip().lower()
    if not cleaned or "@" not in cleaned:
        raise ValidationError("A valid email is required", payload={"error": "invalid_email"})
    return cleaned


def _provider():
    provider = current_app.config.get("IDENTITY_PROVIDER")
    if not provider:
        raise ServiceUnavailableError(
            "Customer directory is not configured",
            payload={"error": "identity_provider_unavailable"},
        )
    return provider
