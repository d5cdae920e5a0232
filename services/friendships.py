"""Friendship resolution and request lifecycle.

Friendships are stored as directed edges (requester -> requested) carrying a
``FriendshipStatus``. Callers ask relationship questions about two users here
without caring which direction the row was written in.

State machine per edge::

    (none) --send_request--> PENDING --accept_request--> ACCEPTED
                              |                             |
                              +--decline_request--> deleted +--unfriend--> deleted

Deleting either participant removes the edge as well (see
``services.accounts.delete_user`` and the ``ON DELETE CASCADE`` foreign keys).
"""
from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError

from extensions import db
from models import Friendship, FriendshipStatus, User
from services.errors import InvalidTransition, NotFoundError, PermissionDenied, RecordInvalid
from utils.time import utcnow

logger = logging.getLogger(__name__)


def _user_id(user: User | int) -> int:
    return user if isinstance(user, int) else user.id


def _between(a_id: int, b_id: int):
    """Criterion matching an edge between the pair in either direction."""
    return or_(
        and_(Friendship.requester_id == a_id, Friendship.requested_id == b_id),
        and_(Friendship.requester_id == b_id, Friendship.requested_id == a_id),
    )


def _exists(*criteria) -> bool:
    return db.session.query(Friendship.query.filter(*criteria).exists()).scalar()


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def friends(user: User) -> set[User]:
    """Users joined to ``user`` by an accepted edge, whichever side requested it."""
    uid = _user_id(user)
    accepted = Friendship.status == FriendshipStatus.ACCEPTED
    requested = (
        User.query.join(Friendship, Friendship.requested_id == User.id)
        .filter(Friendship.requester_id == uid, accepted)
    )
    requesting = (
        User.query.join(Friendship, Friendship.requester_id == User.id)
        .filter(Friendship.requested_id == uid, accepted)
    )
    return set(requested.all()) | set(requesting.all())


def friend_ids(user: User) -> set[int]:
    uid = _user_id(user)
    rows = (
        db.session.query(Friendship.requester_id, Friendship.requested_id)
        .filter(
            Friendship.status == FriendshipStatus.ACCEPTED,
            or_(Friendship.requester_id == uid, Friendship.requested_id == uid),
        )
        .all()
    )
    return {requested if requester == uid else requester for requester, requested in rows}


def is_friend(user: User, other: User) -> bool:
    a_id, b_id = _user_id(user), _user_id(other)
    if a_id == b_id:
        return False
    return _exists(_between(a_id, b_id), Friendship.status == FriendshipStatus.ACCEPTED)


def friendship_between(user: User, other: User) -> Friendship | None:
    """Return the edge between the pair in any state, or None."""
    return Friendship.query.filter(_between(_user_id(user), _user_id(other))).first()


def has_pending_request_between(user: User, other: User) -> bool:
    return _exists(
        _between(_user_id(user), _user_id(other)),
        Friendship.status == FriendshipStatus.PENDING,
    )


def pending_request_id(user: User, other: User) -> int | None:
    """Id of the pending edge between the pair, whichever way it points; None if there is none."""
    row = (
        db.session.query(Friendship.id)
        .filter(
            _between(_user_id(user), _user_id(other)),
            Friendship.status == FriendshipStatus.PENDING,
        )
        .first()
    )
    return row[0] if row else None


def has_incoming_requests(user: User) -> bool:
    return _exists(
        Friendship.requested_id == _user_id(user),
        Friendship.status == FriendshipStatus.PENDING,
    )


def incoming_requests(user: User) -> list[Friendship]:
    return (
        Friendship.query.filter(
            Friendship.requested_id == _user_id(user),
            Friendship.status == FriendshipStatus.PENDING,
        )
        .order_by(Friendship.created_at.desc(), Friendship.id.desc())
        .all()
    )


def has_outgoing_requests(user: User) -> bool:
    return _exists(
        Friendship.requester_id == _user_id(user),
        Friendship.status == FriendshipStatus.PENDING,
    )


def outgoing_requests(user: User) -> list[Friendship]:
    return (
        Friendship.query.filter(
            Friendship.requester_id == _user_id(user),
            Friendship.status == FriendshipStatus.PENDING,
        )
        .order_by(Friendship.created_at.desc(), Friendship.id.desc())
        .all()
    )


def friend_suggestions(user: User, limit: int = 20) -> list[User]:
    """Users with no edge of any kind to ``user``."""
    uid = _user_id(user)
    linked = select(Friendship.requested_id).where(Friendship.requester_id == uid).union(
        select(Friendship.requester_id).where(Friendship.requested_id == uid)
    )
    return (
        User.query.filter(User.id != uid, User.id.notin_(linked))
        .order_by(User.last_name, User.first_name, User.id)
        .limit(limit)
        .all()
    )


def relationship_state(viewer: User, other: User) -> str:
    """Summarise the pair for profile views: self, friends, requested, incoming or none."""
    a_id, b_id = _user_id(viewer), _user_id(other)
    if a_id == b_id:
        return "self"
    edge = friendship_between(a_id, b_id)
    if edge is None:
        return "none"
    if edge.is_accepted:
        return "friends"
    return "requested" if edge.requester_id == a_id else "incoming"


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

def send_request(requester: User, requested: User) -> Friendship:
    if requested is None:
        raise NotFoundError("User not found.")
    if requester.id == requested.id:
        raise RecordInvalid({"requested": ["can't be yourself"]})

    existing = friendship_between(requester, requested)
    if existing is not None:
        if existing.is_accepted:
            raise InvalidTransition("You are already friends.")
        if existing.requester_id == requester.id:
            raise InvalidTransition("Friend request already sent.")
        raise InvalidTransition("This user has already sent you a friend request.")

    friendship = Friendship(requester=requester, requested=requested, status=FriendshipStatus.PENDING)
    db.session.add(friendship)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        logger.warning("Duplicate friend request %s -> %s rejected by constraint", requester.id, requested.id)
        raise InvalidTransition("Friend request already sent.")
    logger.info("Friend request %s sent: %s -> %s", friendship.id, requester.id, requested.id)
    return friendship


def _get_friendship(friendship_id: int) -> Friendship:
    friendship = db.session.get(Friendship, friendship_id)
    if friendship is None:
        raise NotFoundError("Friend request not found.")
    return friendship


def accept_request(friendship_id: int, user: User) -> Friendship:
    """Accept a pending request addressed to ``user``.

    The transition is a single conditional UPDATE so two concurrent accepts
    of the same row cannot both succeed.
    """
    friendship = _get_friendship(friendship_id)
    if friendship.requested_id != user.id:
        raise PermissionDenied("Only the requested user can accept a friend request.")

    result = db.session.execute(
        update(Friendship)
        .where(Friendship.id == friendship.id, Friendship.status == FriendshipStatus.PENDING)
        .values(status=FriendshipStatus.ACCEPTED, accepted_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        logger.warning("Friendship %s accept rejected: not pending", friendship_id)
        raise InvalidTransition("Friend request is no longer pending.")
    db.session.commit()
    db.session.refresh(friendship)
    logger.info("Friendship %s accepted by user %s", friendship.id, user.id)
    return friendship


def decline_request(friendship_id: int, user: User) -> None:
    """Remove a pending request; the requested user declines, the requester cancels."""
    friendship = _get_friendship(friendship_id)
    if not friendship.involves(user):
        raise PermissionDenied("You are not part of this friend request.")
    if not friendship.is_pending:
        raise InvalidTransition("Friend request has already been accepted.")
    db.session.delete(friendship)
    db.session.commit()
    logger.info("Friendship %s declined by user %s", friendship_id, user.id)


def unfriend(user: User, other: User) -> None:
    edge = Friendship.query.filter(
        _between(_user_id(user), _user_id(other)),
        Friendship.status == FriendshipStatus.ACCEPTED,
    ).first()
    if edge is None:
        raise NotFoundError("You are not friends with this user.")
    edge_id = edge.id
    db.session.delete(edge)
    db.session.commit()
    logger.info("Friendship %s removed by user %s", edge_id, _user_id(user))


def delete_edges_for(user_ids: Iterable[int]) -> int:
    """Bulk-delete every edge touching the given users; caller owns the transaction."""
    ids = list(user_ids)
    if not ids:
        return 0
    return (
        Friendship.query.filter(
            or_(Friendship.requester_id.in_(ids), Friendship.requested_id.in_(ids))
        ).delete(synchronize_session=False)
    )
