"""Tests for PushSubscriptionRepository and the Subscription Registry."""

from stalk.models.push_subscription import PushSubscription
from stalk.repositories.push_subscription_repository import PushSubscriptionRepository
from stalk.services.subscription_registry import SubscriptionRegistry

ENDPOINT = "https://fcm.googleapis.com/fcm/send/device-1"


def test_upsert_inserts_new_endpoint(db, alice):
    registry = SubscriptionRegistry(db)

    subscription = registry.upsert(alice.id, ENDPOINT, "p256dh", "auth", user_agent="Firefox")

    assert subscription.id is not None
    assert subscription.user_id == alice.id
    assert registry.list_for_user(alice.id)[0].endpoint == ENDPOINT


def test_upsert_same_endpoint_other_user_reassigns(db, alice, bob):
    registry = SubscriptionRegistry(db)
    original = registry.upsert(alice.id, ENDPOINT, "p256dh-1", "auth-1")

    updated = registry.upsert(bob.id, ENDPOINT, "p256dh-2", "auth-2", user_agent="Chrome")

    assert updated.id == original.id
    assert db.query(PushSubscription).count() == 1
    assert registry.list_for_user(alice.id) == []
    [bobs] = registry.list_for_user(bob.id)
    assert bobs.p256dh_key == "p256dh-2"
    assert bobs.auth_key == "auth-2"
    assert bobs.user_agent == "Chrome"


def test_remove_requires_owner(db, alice, bob):
    registry = SubscriptionRegistry(db)
    registry.upsert(alice.id, ENDPOINT, "p256dh", "auth")

    assert registry.remove(ENDPOINT, bob.id) is False
    assert db.query(PushSubscription).count() == 1

    assert registry.remove(ENDPOINT, alice.id) is True
    assert db.query(PushSubscription).count() == 0


def test_remove_unknown_endpoint(db, alice):
    assert SubscriptionRegistry(db).remove("https://push.example.com/none", alice.id) is False


def test_remove_by_id(db, alice, make_subscription):
    subscription = make_subscription(alice, ENDPOINT)

    assert SubscriptionRegistry(db).remove_by_id(subscription.id) is True
    assert SubscriptionRegistry(db).remove_by_id(subscription.id) is False


def test_list_for_user_is_per_user(db, alice, bob, make_subscription):
    make_subscription(alice, "https://push.example.com/a1")
    make_subscription(alice, "https://push.example.com/a2")
    make_subscription(bob, "https://push.example.com/b1")

    endpoints = sorted(s.endpoint for s in SubscriptionRegistry(db).list_for_user(alice.id))

    assert endpoints == ["https://push.example.com/a1", "https://push.example.com/a2"]


def test_delete_many(db, alice, make_subscription):
    a = make_subscription(alice, "https://push.example.com/a1")
    b = make_subscription(alice, "https://push.example.com/a2")
    repo = PushSubscriptionRepository(db)

    assert repo.delete_many([]) == 0
    assert repo.delete_many([a.id, b.id]) == 2
    db.commit()
    assert db.query(PushSubscription).count() == 0


def test_subscriptions_cascade_with_user(db, alice, make_subscription):
    make_subscription(alice, ENDPOINT)

    db.delete(alice)
    db.commit()

    assert db.query(PushSubscription).count() == 0


def test_upsert_absorbs_a_concurrent_first_subscribe(db, session_factory, alice, bob, monkeypatch):
    # Another request registers the endpoint after this one decided it was new
    other = session_factory()
    try:
        PushSubscriptionRepository(other).upsert(alice.id, ENDPOINT, "p256dh-a", "auth-a")
        other.commit()
    finally:
        other.close()
    monkeypatch.setattr(PushSubscriptionRepository, "_endpoint_exists", lambda self, endpoint: False)

    subscription = SubscriptionRegistry(db).upsert(bob.id, ENDPOINT, "p256dh-b", "auth-b")

    assert subscription.user_id == bob.id
    assert subscription.p256dh_key == "p256dh-b"
    assert db.query(PushSubscription).count() == 1
