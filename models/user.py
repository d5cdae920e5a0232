from __future__ import annotations

from typing import Any

from flask_login import UserMixin
from sqlalchemy import event
from werkzeug.security import check_password_hash, generate_password_hash

from extensions import db
from services.validation import ErrorCollector, is_valid_email, normalize_email, strip_text
from utils.time import utcnow

PASSWORD_MIN_LENGTH = 7
PASSWORD_MAX_LENGTH = 40
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 40

_UNSET = object()


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    # Stored lowercased (see _normalize_email below) so the unique index is case-insensitive.
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(NAME_MAX_LENGTH), nullable=False)
    last_name = db.Column(db.String(NAME_MAX_LENGTH), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    last_login_at = db.Column(db.DateTime, nullable=True)

    posts = db.relationship(
        "Post",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="dynamic",
    )
    comments = db.relationship(
        "Comment",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="dynamic",
    )
    likes = db.relationship(
        "Like",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="dynamic",
    )

    # Every edge this user is part of, pending or accepted.
    sent_friendships = db.relationship(
        "Friendship",
        foreign_keys="Friendship.requester_id",
        back_populates="requester",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="dynamic",
    )
    received_friendships = db.relationship(
        "Friendship",
        foreign_keys="Friendship.requested_id",
        back_populates="requested",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="dynamic",
    )

    # Accepted edges, seen from either end.
    requested_friends = db.relationship(
        "User",
        secondary="friendships",
        primaryjoin="and_(User.id == Friendship.requester_id, Friendship.status == 'accepted')",
        secondaryjoin="User.id == Friendship.requested_id",
        viewonly=True,
    )
    requesting_friends = db.relationship(
        "User",
        secondary="friendships",
        primaryjoin="and_(User.id == Friendship.requested_id, Friendship.status == 'accepted')",
        secondaryjoin="User.id == Friendship.requester_id",
        viewonly=True,
    )
    unapproved_requesting_friends = db.relationship(
        "User",
        secondary="friendships",
        primaryjoin="and_(User.id == Friendship.requested_id, Friendship.status == 'pending')",
        secondaryjoin="User.id == Friendship.requester_id",
        viewonly=True,
    )

    audit_logs = db.relationship("AuditLog", back_populates="user", lazy="dynamic", passive_deletes=True)

    def __repr__(self) -> str:  # pragma: no cover - repr helper
        return f"<User {self.id} {self.email}>"

    def get_id(self) -> str:
        return str(self.id)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    # Password helpers -----------------------------------------------------
    @property
    def password(self) -> str | None:
        """Plaintext assigned during this unit of work, kept only for validation."""
        raw = getattr(self, "_raw_password", _UNSET)
        return None if raw is _UNSET else raw

    @password.setter
    def password(self, raw_password: Any) -> None:
        self._raw_password = raw_password
        if isinstance(raw_password, str) and raw_password:
            self.password_hash = generate_password_hash(raw_password)
        else:
            self.password_hash = None

    def set_password(self, raw_password: str) -> None:
        self.password = raw_password

    def forget_password(self) -> None:
        """Drop the plaintext kept for validation; the hash stays."""
        self.__dict__.pop("_raw_password", None)

    def check_password(self, raw_password: str | None) -> bool:
        if not isinstance(raw_password, str) or not raw_password or not self.password_hash:
            return False
        return check_password_hash(self.password_hash, raw_password)

    # Validation -----------------------------------------------------------
    def validation_errors(self) -> dict[str, list[str]]:
        errors = ErrorCollector()

        # Format is matched on the address as typed, before lowercasing.
        email = strip_text(self.email)
        if errors.presence("email", email):
            if not is_valid_email(email):
                errors.add("email", "is invalid")
            elif self.email_taken(email, exclude_id=self.id):
                errors.add("email", "has already been taken")

        raw = getattr(self, "_raw_password", _UNSET)
        if raw is not _UNSET or not self.password_hash:
            value = None if raw is _UNSET else raw
            if errors.presence("password", value):
                errors.length("password", value, minimum=PASSWORD_MIN_LENGTH, maximum=PASSWORD_MAX_LENGTH)

        for field in ("first_name", "last_name"):
            value = getattr(self, field)
            if errors.presence(field, value):
                errors.length(field, value, minimum=NAME_MIN_LENGTH, maximum=NAME_MAX_LENGTH)

        return errors.errors

    def is_valid(self) -> bool:
        return not self.validation_errors()

    def validate(self) -> None:
        from services.errors import RecordInvalid

        errors = self.validation_errors()
        if errors:
            raise RecordInvalid(errors)

    @classmethod
    def email_taken(cls, email: str | None, *, exclude_id: int | None = None) -> bool:
        """Fast-path uniqueness hint; the unique index on users.email is authoritative."""
        normalized = normalize_email(email)
        if not isinstance(normalized, str) or not normalized:
            return False
        with db.session.no_autoflush:
            query = cls.query.filter(cls.email == normalized)
            if exclude_id is not None:
                query = query.filter(cls.id != exclude_id)
            return db.session.query(query.exists()).scalar()

    # Friendship helpers ---------------------------------------------------
    @property
    def friends(self) -> list["User"]:
        from services import friendships

        return sorted(friendships.friends(self), key=lambda friend: friend.id)

    def is_friend(self, other: "User") -> bool:
        from services import friendships

        return friendships.is_friend(self, other)

    def has_request_with(self, other: "User") -> bool:
        from services import friendships

        return friendships.has_pending_request_between(self, other)

    def request_id(self, other: "User") -> int | None:
        from services import friendships

        return friendships.pending_request_id(self, other)

    @property
    def has_requests(self) -> bool:
        from services import friendships

        return friendships.has_incoming_requests(self)

    @property
    def requests(self) -> list[Any]:
        from services import friendships

        return friendships.incoming_requests(self)


@event.listens_for(User, "before_insert")
@event.listens_for(User, "before_update")
def _normalize_email(mapper, connection, target: User) -> None:
    """Lowercase the email on every save so the unique index compares case-insensitively."""
    target.email = normalize_email(target.email)


class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = db.Column(db.String(120), nullable=False)
    details = db.Column(db.JSON, nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    user = db.relationship("User", back_populates="audit_logs")
