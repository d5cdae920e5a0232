from __future__ import annotations

import enum

from extensions import db
from utils.time import utcnow


class FriendshipStatus(str, enum.Enum):
    """Lifecycle of a directed friendship edge.

    PENDING -> ACCEPTED is the only transition; removing the row (decline,
    unfriend or user deletion) ends the edge from either state.
    """

    PENDING = "pending"
    ACCEPTED = "accepted"


class Friendship(db.Model):
    __tablename__ = "friendships"
    __table_args__ = (
        db.UniqueConstraint("requester_id", "requested_id", name="uq_friendships_requester_requested"),
        # Reverse lookups ("does an edge point at me from them?") stay index-only.
        db.Index("ix_friendships_requested_requester", "requested_id", "requester_id"),
        db.CheckConstraint("requester_id <> requested_id", name="not_self"),
    )

    id = db.Column(db.Integer, primary_key=True)
    requester_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    requested_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status = db.Column(
        db.Enum(
            FriendshipStatus,
            name="friendship_status",
            native_enum=False,
            create_constraint=True,
            length=16,
            values_callable=lambda members: [member.value for member in members],
        ),
        nullable=False,
        default=FriendshipStatus.PENDING,
        server_default=db.text(f"'{FriendshipStatus.PENDING.value}'"),
        index=True,
    )
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    accepted_at = db.Column(db.DateTime, nullable=True)

    requester = db.relationship("User", foreign_keys=[requester_id], back_populates="sent_friendships")
    requested = db.relationship("User", foreign_keys=[requested_id], back_populates="received_friendships")

    def __repr__(self) -> str:  # pragma: no cover - repr helper
        return f"<Friendship {self.id} {self.requester_id}->{self.requested_id} {self.status.value if self.status else None}>"

    @property
    def is_pending(self) -> bool:
        return self.status in (None, FriendshipStatus.PENDING)

    @property
    def is_accepted(self) -> bool:
        return self.status == FriendshipStatus.ACCEPTED

    @property
    def accepted(self) -> bool:
        """Boolean view of the state, matching the ``accepted`` column of older schemas."""
        return self.is_accepted

    @accepted.setter
    def accepted(self, value: bool) -> None:
        if value:
            self.accept()
        elif self.is_accepted:
            from services.errors import InvalidTransition

            raise InvalidTransition("An accepted friendship cannot return to pending.")
        else:
            self.status = FriendshipStatus.PENDING

    def involves(self, user) -> bool:
        user_id = getattr(user, "id", user)
        return user_id in (self.requester_id, self.requested_id)

    def other(self, user):
        """Return the participant that is not ``user``."""
        user_id = getattr(user, "id", user)
        if user_id == self.requester_id:
            return self.requested
        if user_id == self.requested_id:
            return self.requester
        return None

    def accept(self) -> None:
        if not self.is_pending:
            from services.errors import InvalidTransition

            raise InvalidTransition(f"Friendship {self.id} is already accepted.")
        self.status = FriendshipStatus.ACCEPTED
        self.accepted_at = utcnow()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "requester_id": self.requester_id,
            "requested_id": self.requested_id,
            "status": (self.status or FriendshipStatus.PENDING).value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "accepted_at": self.accepted_at.isoformat() if self.accepted_at else None,
        }
