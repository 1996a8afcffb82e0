"""
Test the Redis lock that serializes seat allocation per event.
"""
from unittest.mock import Mock

import pytest
import redis

from eventreg.schemas.registrations import RegistrationCreate
from eventreg.services.errors import LockUnavailableError, ValidationError
from eventreg.services.registrations import RegistrationService


class TestEventLock:
    """Test Redis locking around registration."""

    def test_lock_released_after_registration(self, service, fake_redis, make_event, make_user):
        event = make_event()
        service.register_for_event(make_user().id, RegistrationCreate(event_id=event.id))

        lock = fake_redis.lock(f"event_lock:{event.id}", timeout=10)
        assert lock.acquire(blocking=False) is True
        lock.release()

    def test_lock_released_after_failure(self, service, fake_redis, make_event, make_user, organizer):
        event = make_event()
        user = make_user()
        registration = service.register_for_event(user.id, RegistrationCreate(event_id=event.id))
        service.check_in_user(organizer.id, registration.id)

        # Rejected inside the locked section
        with pytest.raises(ValidationError):
            service.cancel_registration(user.id, registration.id)

        lock = fake_redis.lock(f"event_lock:{event.id}", timeout=10)
        assert lock.acquire(blocking=False) is True
        lock.release()

    def test_held_lock_times_out(self, service, fake_redis, make_event, make_user, monkeypatch):
        monkeypatch.setattr("eventreg.services.registrations.get_lock_timeouts", lambda: (1.0, 0.2))
        event = make_event()
        held = fake_redis.lock(f"event_lock:{event.id}", timeout=10)
        assert held.acquire(blocking=False) is True

        try:
            with pytest.raises(LockUnavailableError):
                service.register_for_event(make_user().id, RegistrationCreate(event_id=event.id))
        finally:
            held.release()

        assert service.get_event_capacity(event.id).available == event.capacity

    def test_locks_are_per_event(self, service, fake_redis, make_event, make_user):
        busy_event = make_event()
        free_event = make_event()
        held = fake_redis.lock(f"event_lock:{busy_event.id}", timeout=10)
        held.acquire(blocking=False)

        try:
            registration = service.register_for_event(make_user().id, RegistrationCreate(event_id=free_event.id))
            assert registration.event_id == free_event.id
        finally:
            held.release()

    def test_redis_unavailable(self, db_session, notifier, make_event, make_user):
        broken = Mock()
        broken.lock.return_value.acquire.side_effect = redis.exceptions.ConnectionError("connection refused")
        service = RegistrationService.from_session(db_session, notifier, redis_client=broken)

        with pytest.raises(LockUnavailableError):
            service.register_for_event(make_user().id, RegistrationCreate(event_id=make_event().id))

    def test_expired_lock_does_not_fail_committed_registration(self, db_session, notifier, make_event, make_user):
        expired = Mock()
        expired.lock.return_value.acquire.return_value = True
        expired.lock.return_value.release.side_effect = redis.exceptions.LockNotOwnedError("expired")
        service = RegistrationService.from_session(db_session, notifier, redis_client=expired)

        registration = service.register_for_event(make_user().id, RegistrationCreate(event_id=make_event().id))

        assert registration.id is not None

    def test_default_client_comes_from_config(self, db_session, notifier, redis_client):
        service = RegistrationService.from_session(db_session, notifier)
        assert service.redis is redis_client
