"""Tests for the in-memory Presence Table."""

import pytest

from stalk.services.realtime.presence import PresenceTable


def test_starts_empty():
    presence = PresenceTable()

    assert presence.is_online(1) is False
    assert presence.online_count == 0
    assert presence.connection_count == 0


def test_first_connection_brings_user_online():
    presence = PresenceTable()

    assert presence.add_connection(1, "c1") is True
    assert presence.is_online(1) is True


def test_second_connection_is_not_a_transition():
    presence = PresenceTable()
    presence.add_connection(1, "c1")

    assert presence.add_connection(1, "c2") is False
    assert presence.connections_for(1) == frozenset({"c1", "c2"})


def test_only_last_removal_goes_offline():
    presence = PresenceTable()
    presence.add_connection(1, "c1")
    presence.add_connection(1, "c2")

    assert presence.remove_connection("c1") == (1, False)
    assert presence.is_online(1) is True
    assert presence.remove_connection("c2") == (1, True)
    assert presence.is_online(1) is False
    assert presence.online_user_ids() == []


def test_remove_unknown_connection():
    assert PresenceTable().remove_connection("nope") == (None, False)


def test_users_are_independent():
    presence = PresenceTable()
    presence.add_connection(1, "a")
    presence.add_connection(2, "b")

    assert presence.remove_connection("a") == (1, True)
    assert presence.is_online(2) is True
    assert presence.user_for("b") == 2


def test_connection_cannot_belong_to_two_users():
    presence = PresenceTable()
    presence.add_connection(1, "c1")

    with pytest.raises(ValueError):
        presence.add_connection(2, "c1")


def test_re_adding_same_connection_is_idempotent():
    presence = PresenceTable()
    presence.add_connection(1, "c1")

    assert presence.add_connection(1, "c1") is False
    assert presence.connection_count == 1
