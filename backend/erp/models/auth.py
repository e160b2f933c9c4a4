from __future__ import annotations

from ..extensions import db
from erp.time_utils import to_utc_z


class User(db.Model):
    """
    Operator accounts for attribution and access policy.

    WHY: Every write is stamped with the acting user's display name,
    and the user's role selects a row of the permission table.

    NOTE: Credentials live with the identity provider, not here.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_users_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), nullable=False)
    display_name = db.Column(db.String(128), nullable=False)
    role = db.Column(db.String(16), nullable=False, default="user", index=True)  # admin, supervisor, user

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by = db.Column(db.String(255), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "display_name": self.display_name,
            "role": self.role,
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
        }
