"""Sign-in and user account endpoints."""

from __future__ import annotations

from flask import Blueprint, jsonify

from errors import AdventureError
from request_parsing import json_body

from . import service

identity_bp = Blueprint("identity", __name__, url_prefix="/api")


@identity_bp.post("/auth/shopify/customer")
def shopify_customer_login():
    try:
        payload = json_body()
        user, created = service.login_with_email(payload.get("email"))
    except AdventureError as exc:
        return jsonify(exc.payload), exc.status_code
    return jsonify(
        {
            "user": user.to_public_dict(),
            "created": created,
            "message": "Authentication successful",
        }
    )


@identity_bp.get("/auth/shopify/customer/<customer_id>")
def shopify_customer_lookup(customer_id: str):
    try:
        user, _created = service.sync_customer(customer_id.strip())
    except AdventureError as exc:
        return jsonify(exc.payload), exc.status_code
    return jsonify(user.to_public_dict())


@identity_bp.post("/users")
def create_user():
    try:
        payload = json_body()
        user = service.create_user(payload.get("email"), payload.get("name"))
    except AdventureError as exc:
        return jsonify(exc.payload), exc.status_code
    return jsonify(user.to_public_dict()), 201


@identity_bp.get("/users/<email>")
def get_user_by_email(email: str):
    try:
        user = service.get_user_by_email(email)
    except AdventureError as exc:
        return jsonify(exc.payload), exc.status_code
    return jsonify(user.to_public_dict())
