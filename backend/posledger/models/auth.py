from __future__ import annotations

import secrets

from ..extensions import db
from posledger.time_utils import to_utc_z

ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
VALID_ROLES = (ROLE_ADMIN, ROLE_MANAGER)


def generate_api_token() -> str:
    return secrets.token_urlsafe(32)


class User(db.Model):
    """
    User accounts for attribution.

    Credentials are owned by the upstream identity provider; this table only
    maps an API token to an actor and a role. Every sale and payout records
    the acting user explicitly.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_role_active", "role", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True)

    # admin | manager
    role = db.Column(db.String(16), nullable=False, default=ROLE_MANAGER)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    api_token = db.Column(db.String(64), nullable=False, unique=True, default=generate_api_token)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_manager(self) -> bool:
        return self.role == ROLE_MANAGER

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
