"""
Test Celery notification tasks.
"""
import uuid
from unittest.mock import patch

from sqlalchemy.orm import Session

from eventreg.models.notifications import NotificationType
from eventreg.repositories.notifications import NotificationRepository
from eventreg.services.notifications import CeleryNotificationService
from eventreg.tasks import send_registration_confirmation_task, send_waitlist_available_task


class TestCeleryTasks:
    """Test Celery task functionality."""

    def test_confirmation_task_records_notification(self, session_factory, db_session: Session, make_event, make_user):
        event = make_event(title="Board Game Night")
        user = make_user()

        with patch("eventreg.tasks.SessionLocal", session_factory):
            # Call the task function directly (not through Celery)
            send_registration_confirmation_task.run(str(user.id), str(event.id))

        notifications = NotificationRepository(db_session).find_by_user(user.id)
        assert len(notifications) == 1
        assert notifications[0].type == NotificationType.REGISTRATION_CONFIRMED.value
        assert "Board Game Night" in notifications[0].message
        assert notifications[0].is_read is False

    def test_waitlist_task_records_notification(self, session_factory, db_session: Session, make_event, make_user):
        event = make_event()
        user = make_user()

        with patch("eventreg.tasks.SessionLocal", session_factory):
            send_waitlist_available_task.run(str(user.id), str(event.id))

        notifications = NotificationRepository(db_session).find_by_user(user.id)
        assert [n.type for n in notifications] == [NotificationType.WAITLIST_AVAILABLE.value]
        assert notifications[0].title == "Spot Available!"

    def test_task_with_nonexistent_user(self, session_factory, make_event):
        """Tasks skip users that no longer exist."""
        event = make_event()
        with patch("eventreg.tasks.SessionLocal", session_factory):
            # Should not raise an exception
            send_registration_confirmation_task.run(str(uuid.uuid4()), str(event.id))

    def test_celery_app_configuration(self):
        """Test that Celery app is properly configured."""
        from eventreg.core.celery_config import celery_app

        assert celery_app.conf.task_serializer == "json"
        assert celery_app.conf.result_serializer == "json"
        assert "json" in celery_app.conf.accept_content
        assert celery_app.conf.task_ignore_result is True

    def test_tasks_are_registered(self):
        from eventreg.core.celery_config import celery_app

        assert "eventreg.tasks.send_registration_confirmation_task" in celery_app.tasks
        assert "eventreg.tasks.send_waitlist_available_task" in celery_app.tasks


class TestCeleryNotificationService:
    def test_enqueues_confirmation(self):
        user_id, event_id = uuid.uuid4(), uuid.uuid4()
        with patch.object(send_registration_confirmation_task, "delay") as delay:
            CeleryNotificationService().notify_registration_confirmation(user_id, event_id)
        delay.assert_called_once_with(str(user_id), str(event_id))

    def test_enqueues_waitlist_available(self):
        user_id, event_id = uuid.uuid4(), uuid.uuid4()
        with patch.object(send_waitlist_available_task, "delay") as delay:
            CeleryNotificationService().notify_waitlist_available(user_id, event_id)
        delay.assert_called_once_with(str(user_id), str(event_id))
