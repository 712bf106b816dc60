from datetime import datetime, timedelta, timezone

import pytest

from eventhub.auth_service.models import User
from eventhub.core.exceptions import (
    AlreadyRegisteredError,
    EventFullError,
    NotRegisteredError,
    ValidationError,
)
from eventhub.events_service.models import Event, clean_event_fields


def make_event(**overrides):
    data = {"title": "Python Meetup", "date": "2030-05-01T18:00:00Z"}
    data.update(overrides)
    return Event.new(data, "org-1")


# --- USER ---

def test_user_new_normalizes_email_and_hashes_password():
    user = User.new("  Test@Example.COM ", "password123", "Ada", "Lovelace")

    assert user.email == "test@example.com"
    assert user.role == "attendee"
    assert user.is_active is True
    assert user.password_hash != "password123"
    assert user.verify_password("password123") is True


def test_user_verify_password_mismatch_returns_false():
    user = User.new("a@example.com", "password123", "Ada", "Lovelace")

    assert user.verify_password("wrong-password") is False
    assert user.verify_password("") is False


def test_user_new_rejects_unknown_role():
    with pytest.raises(ValidationError):
        User.new("a@example.com", "password123", "Ada", "Lovelace", role="admin")


def test_user_to_dict_never_exposes_hash():
    user = User.new("a@example.com", "password123", "Ada", "Lovelace")

    assert "password_hash" not in user.to_dict()
    assert "password_hash" in user.to_record()


def test_user_profile_update_only_touches_given_fields():
    user = User.new("a@example.com", "password123", "Ada", "Lovelace")
    before = user.updated_at

    user.apply_profile_update(first_name="Augusta")

    assert user.first_name == "Augusta"
    assert user.last_name == "Lovelace"
    assert user.email == "a@example.com"
    assert user.updated_at >= before


def test_user_record_round_trip():
    user = User.new("a@example.com", "password123", "Ada", "Lovelace", role="organizer")
    user.deactivate()

    restored = User.from_record(user.to_record())

    assert restored == user
    assert restored.verify_password("password123") is True


def test_user_from_record_rejects_bad_timestamp():
    record = User.new("a@example.com", "password123", "Ada", "Lovelace").to_record()
    record["created_at"] = "not-a-date"

    with pytest.raises(ValueError):
        User.from_record(record)


# --- EVENT ---

def test_event_new_requires_title_and_date():
    with pytest.raises(ValidationError):
        Event.new({"date": "2030-05-01"}, "org-1")
    with pytest.raises(ValidationError):
        Event.new({"title": "No date"}, "org-1")


def test_event_new_parses_date_and_applies_defaults():
    event = make_event()

    assert event.date == datetime(2030, 5, 1, 18, 0, tzinfo=timezone.utc)
    assert event.duration == 60
    assert event.category == "general"
    assert event.status == "scheduled"
    assert event.max_participants is None
    assert event.participants == []


def test_clean_event_fields_rejects_bad_values():
    with pytest.raises(ValidationError):
        clean_event_fields({"date": "yesterday"})
    with pytest.raises(ValidationError):
        clean_event_fields({"status": "postponed"})
    with pytest.raises(ValidationError):
        clean_event_fields({"max_participants": 0})
    with pytest.raises(ValidationError):
        clean_event_fields({"is_public": "yes"})


def test_clean_event_fields_drops_unknown_keys():
    cleaned = clean_event_fields({"title": " Talk ", "organizer_id": "someone-else", "participants": ["x"]})

    assert cleaned == {"title": "Talk"}


def test_register_participant_capacity_then_duplicate():
    event = make_event(max_participants=1)
    event.register_participant("u1")

    # A full event reports full even for an existing participant.
    with pytest.raises(EventFullError):
        event.register_participant("u1")
    with pytest.raises(EventFullError):
        event.register_participant("u2")
    assert event.participants == ["u1"]


def test_register_participant_twice_fails():
    event = make_event()
    event.register_participant("u1")

    with pytest.raises(AlreadyRegisteredError):
        event.register_participant("u1")
    assert event.participants == ["u1"]


def test_unregister_non_member_fails():
    event = make_event()

    with pytest.raises(NotRegisteredError):
        event.unregister_participant("ghost")
    assert event.participants == []


def test_available_spots():
    assert make_event().available_spots() is None

    event = make_event(max_participants=3)
    event.register_participant("u1")
    assert event.available_spots() == 2


def test_views_hide_the_right_fields():
    event = make_event()
    event.register_participant("u1")

    public = event.to_public_dict()
    organizer = event.to_organizer_dict()
    registrant = event.to_registrant_dict()

    assert "participants" not in public
    assert public["organizer_id"] == "org-1"
    assert public["participant_count"] == 1
    assert organizer["participants"] == ["u1"]
    assert "organizer_id" not in registrant
    assert "participants" not in registrant


def test_stats_registration_rate_and_days():
    event = make_event(max_participants=4)
    event.register_participant("u1")
    now = event.date - timedelta(days=2, hours=1)

    stats = event.to_stats(now=now)

    assert stats["registration_rate"] == "25.00%"
    assert stats["days_until_event"] == 3
    assert make_event().to_stats()["registration_rate"] == "Unlimited"


def test_event_record_round_trip_keeps_participant_order():
    event = make_event(max_participants=5, meeting_link="https://meet.example.com/x")
    for user_id in ("c", "a", "b"):
        event.register_participant(user_id)

    restored = Event.from_record(event.to_record())

    assert restored == event
    assert restored.participants == ["c", "a", "b"]


def test_restore_undoes_in_place_changes():
    event = make_event()
    before = event.to_record()
    event.apply_update({"title": "Changed"})
    event.register_participant("u1")

    event.restore(before)

    assert event.title == "Python Meetup"
    assert event.participants == []


def test_profile_update_checks_every_field_before_assigning():
    user = User.new("a@example.com", "password123", "Ada", "Lovelace")

    with pytest.raises(ValidationError):
        user.apply_profile_update(first_name="Augusta", last_name=5)

    assert user.first_name == "Ada"


def test_user_new_rejects_non_text_fields():
    with pytest.raises(ValidationError):
        User.new(5, "password123", "Ada", "Lovelace")
    with pytest.raises(ValidationError):
        User.new("a@example.com", 12345678, "Ada", "Lovelace")
    with pytest.raises(ValidationError):
        User.new("a@example.com", "password123", "Ada \udfff", "Lovelace")


def test_clean_event_fields_rejects_unencodable_text():
    with pytest.raises(ValidationError):
        clean_event_fields({"title": "Bad \ud800 title"})
    with pytest.raises(ValidationError):
        clean_event_fields({"description": "x\udc00"})
    with pytest.raises(ValidationError):
        clean_event_fields({"meeting_link": "https://meet.example.com/\ud800"})
