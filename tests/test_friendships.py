import pytest
from sqlalchemy import update

from extensions import db
from models import Friendship, FriendshipStatus
from services import friendships
from services.errors import InvalidTransition, NotFoundError, PermissionDenied, RecordInvalid
from factories import create_friendship, create_user


@pytest.fixture
def pair(db_session):
    return create_user(), create_user()


def test_friends_is_symmetric(pair):
    alice, bob = pair
    create_friendship(requester=alice, requested=bob, accepted=True)

    assert friendships.friends(alice) == {bob}
    assert friendships.friends(bob) == {alice}
    assert friendships.is_friend(alice, bob)
    assert friendships.is_friend(bob, alice)


def test_pending_edge_is_not_a_friendship(pair):
    alice, bob = pair
    create_friendship(requester=alice, requested=bob)

    assert friendships.friends(alice) == set()
    assert not friendships.is_friend(alice, bob)
    assert friendships.has_pending_request_between(alice, bob)
    assert friendships.has_pending_request_between(bob, alice)


def test_user_is_never_their_own_friend(pair):
    alice, _ = pair
    assert not friendships.is_friend(alice, alice)
    assert friendships.relationship_state(alice, alice) == "self"


def test_pending_request_id_from_either_side(pair):
    alice, bob = pair
    edge = create_friendship(requester=alice, requested=bob)

    assert friendships.pending_request_id(alice, bob) == edge.id
    assert friendships.pending_request_id(bob, alice) == edge.id


def test_pending_request_id_is_none_without_pending_edge(pair):
    alice, bob = pair
    assert friendships.pending_request_id(alice, bob) is None

    create_friendship(requester=alice, requested=bob, accepted=True)
    assert friendships.pending_request_id(alice, bob) is None
    assert friendships.friendship_between(bob, alice) is not None


def test_incoming_requests_only_lists_pending_edges_addressed_to_user(db_session):
    me = create_user()
    pending = create_friendship(requested=me)
    friend = create_friendship(requested=me, accepted=True).requester
    outgoing = create_friendship(requester=me)

    assert friendships.has_incoming_requests(me)
    assert [edge.id for edge in friendships.incoming_requests(me)] == [pending.id]
    assert [edge.id for edge in friendships.outgoing_requests(me)] == [outgoing.id]
    assert friendships.has_outgoing_requests(me)
    assert not friendships.has_outgoing_requests(friend)
    assert not friendships.has_incoming_requests(friend)


def test_request_accept_round_trip(pair):
    alice, bob = pair
    request = friendships.send_request(alice, bob)
    assert friendships.relationship_state(alice, bob) == "requested"
    assert friendships.relationship_state(bob, alice) == "incoming"

    accepted = friendships.accept_request(request.id, bob)

    assert accepted.status is FriendshipStatus.ACCEPTED
    assert accepted.accepted_at is not None
    assert friendships.is_friend(alice, bob)
    assert friendships.pending_request_id(alice, bob) is None
    assert friendships.relationship_state(alice, bob) == "friends"
    assert not friendships.has_incoming_requests(bob)


def test_send_request_rejects_self(pair):
    alice, _ = pair
    with pytest.raises(RecordInvalid) as excinfo:
        friendships.send_request(alice, alice)
    assert excinfo.value.errors == {"requested": ["can't be yourself"]}


def test_send_request_rejects_missing_target(pair):
    alice, _ = pair
    with pytest.raises(NotFoundError):
        friendships.send_request(alice, None)


@pytest.mark.parametrize(
    "accepted, reverse, message",
    [
        (True, False, "You are already friends."),
        (False, False, "Friend request already sent."),
        (False, True, "This user has already sent you a friend request."),
    ],
)
def test_send_request_rejects_existing_edge(pair, accepted, reverse, message):
    alice, bob = pair
    if reverse:
        create_friendship(requester=bob, requested=alice, accepted=accepted)
    else:
        create_friendship(requester=alice, requested=bob, accepted=accepted)

    with pytest.raises(InvalidTransition, match=message):
        friendships.send_request(alice, bob)
    assert Friendship.query.count() == 1


def test_only_requested_user_can_accept(pair):
    alice, bob = pair
    edge = create_friendship(requester=alice, requested=bob)

    with pytest.raises(PermissionDenied):
        friendships.accept_request(edge.id, alice)
    assert not friendships.is_friend(alice, bob)


def test_accepting_twice_is_rejected(pair):
    alice, bob = pair
    edge = create_friendship(requester=alice, requested=bob)
    friendships.accept_request(edge.id, bob)

    with pytest.raises(InvalidTransition):
        friendships.accept_request(edge.id, bob)


def test_accept_loses_race_against_concurrent_accept(pair):
    alice, bob = pair
    edge = create_friendship(requester=alice, requested=bob)
    edge_id = edge.id
    assert edge.status is FriendshipStatus.PENDING

    # The row flips underneath while the loaded instance still reads as pending.
    db.session.execute(
        update(Friendship)
        .where(Friendship.id == edge_id)
        .values(status=FriendshipStatus.ACCEPTED)
        .execution_options(synchronize_session=False)
    )
    assert edge.status is FriendshipStatus.PENDING

    with pytest.raises(InvalidTransition, match="no longer pending"):
        friendships.accept_request(edge_id, bob)
    assert db.session.get(Friendship, edge_id).status is FriendshipStatus.PENDING


def test_accept_unknown_request(pair):
    _, bob = pair
    with pytest.raises(NotFoundError):
        friendships.accept_request(999, bob)


def test_accepted_flag_cannot_go_back_to_pending(pair):
    alice, bob = pair
    edge = create_friendship(requester=alice, requested=bob, accepted=True)
    assert edge.accepted
    with pytest.raises(InvalidTransition):
        edge.accepted = False


@pytest.mark.parametrize("who", ["requester", "requested"])
def test_either_participant_can_decline(pair, who):
    alice, bob = pair
    edge = create_friendship(requester=alice, requested=bob)

    friendships.decline_request(edge.id, alice if who == "requester" else bob)
    assert Friendship.query.count() == 0


def test_outsider_cannot_decline(pair):
    alice, bob = pair
    edge = create_friendship(requester=alice, requested=bob)
    with pytest.raises(PermissionDenied):
        friendships.decline_request(edge.id, create_user())


def test_decline_does_not_remove_friendship(pair):
    alice, bob = pair
    edge = create_friendship(requester=alice, requested=bob, accepted=True)
    with pytest.raises(InvalidTransition):
        friendships.decline_request(edge.id, bob)
    assert friendships.is_friend(alice, bob)


def test_unfriend_from_either_side(pair):
    alice, bob = pair
    create_friendship(requester=alice, requested=bob, accepted=True)

    friendships.unfriend(bob, alice)
    assert not friendships.is_friend(alice, bob)
    assert Friendship.query.count() == 0

    with pytest.raises(NotFoundError):
        friendships.unfriend(alice, bob)


def test_suggestions_skip_anyone_already_linked(db_session):
    me = create_user()
    friend = create_user()
    requested = create_user()
    requester = create_user()
    stranger = create_user()
    create_friendship(requester=me, requested=friend, accepted=True)
    create_friendship(requester=me, requested=requested)
    create_friendship(requester=requester, requested=me)

    assert [user.id for user in friendships.friend_suggestions(me)] == [stranger.id]


def test_user_helpers_delegate_to_resolver(pair):
    alice, bob = pair
    edge = create_friendship(requester=bob, requested=alice)

    assert alice.has_request_with(bob)
    assert alice.request_id(bob) == edge.id
    assert alice.has_requests
    assert [request.id for request in alice.requests] == [edge.id]
    assert not alice.is_friend(bob)


def test_derived_relationships_split_edges_by_direction_and_state(db_session):
    me = create_user()
    i_asked = create_user()
    asked_me = create_user()
    waiting_on_me = create_user()
    waiting_on_them = create_user()
    create_friendship(requester=me, requested=i_asked, accepted=True)
    create_friendship(requester=asked_me, requested=me, accepted=True)
    create_friendship(requester=waiting_on_me, requested=me)
    create_friendship(requester=me, requested=waiting_on_them)

    assert [user.id for user in me.requested_friends] == [i_asked.id]
    assert [user.id for user in me.requesting_friends] == [asked_me.id]
    assert [user.id for user in me.unapproved_requesting_friends] == [waiting_on_me.id]
    assert {user.id for user in me.requested_friends + me.requesting_friends} == {
        friend.id for friend in friendships.friends(me)
    }
    assert [user.id for user in waiting_on_them.unapproved_requesting_friends] == [me.id]
