"""Shared Flask extensions for the check-in API and its feature blueprints."""

from flask_sqlalchemy import SQLAlchemy

# SQLAlchemy instance bound in app.create_app so services can import `db`.
db = SQLAlchemy()
