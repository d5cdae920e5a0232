from __future__ import annotations

from extensions import db
from services.validation import ErrorCollector
from utils.time import utcnow

POST_MAX_LENGTH = 1000
COMMENT_MAX_LENGTH = 250


class _ContentValidation:
    """Presence/length validation shared by posts and comments."""

    def validation_errors(self) -> dict[str, list[str]]:
        errors = ErrorCollector()
        content = self.content.strip() if isinstance(self.content, str) else self.content
        if errors.presence("content", content):
            errors.length("content", content, maximum=self.MAX_LENGTH)
        if self.user_id is None and getattr(self, "user", None) is None:
            errors.add("user", "must exist")
        return errors.errors

    def is_valid(self) -> bool:
        return not self.validation_errors()

    def validate(self) -> None:
        from services.errors import RecordInvalid

        errors = self.validation_errors()
        if errors:
            raise RecordInvalid(errors)


class Post(_ContentValidation, db.Model):
    __tablename__ = "posts"

    MAX_LENGTH = POST_MAX_LENGTH

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user = db.relationship("User", back_populates="posts")
    comments = db.relationship(
        "Comment",
        back_populates="post",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Comment.created_at",
    )
    likes = db.relationship(
        "Like",
        back_populates="post",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def liked_by(self, user) -> bool:
        user_id = getattr(user, "id", user)
        return any(like.user_id == user_id for like in self.likes)

    def to_dict(self, viewer=None) -> dict:
        payload = {
            "id": self.id,
            "user_id": self.user_id,
            "author": self.user.full_name if self.user else None,
            "content": self.content,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "like_count": len(self.likes),
            "comments": [comment.to_dict() for comment in self.comments],
        }
        if viewer is not None:
            payload["liked"] = self.liked_by(viewer)
        return payload


class Comment(_ContentValidation, db.Model):
    __tablename__ = "comments"

    MAX_LENGTH = COMMENT_MAX_LENGTH

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    post_id = db.Column(db.Integer, db.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    content = db.Column(db.String(COMMENT_MAX_LENGTH), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    user = db.relationship("User", back_populates="comments")
    post = db.relationship("Post", back_populates="comments")

    def validation_errors(self) -> dict[str, list[str]]:
        errors = super().validation_errors()
        if self.post_id is None and self.post is None:
            errors.setdefault("post", []).append("must exist")
        return errors

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "post_id": self.post_id,
            "user_id": self.user_id,
            "author": self.user.full_name if self.user else None,
            "content": self.content,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class Like(db.Model):
    __tablename__ = "likes"
    __table_args__ = (
        db.UniqueConstraint("user_id", "post_id", name="uq_likes_user_post"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    post_id = db.Column(db.Integer, db.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    user = db.relationship("User", back_populates="likes")
    post = db.relationship("Post", back_populates="likes")
