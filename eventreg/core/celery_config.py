from celery import Celery

from eventreg.core.config import get_redis_url


def make_celery(app_name: str = "eventreg") -> Celery:
    redis_url = get_redis_url()
    celery = Celery(app_name, broker=redis_url, backend=redis_url, include=["eventreg.tasks"])
    celery.conf.task_serializer = "json"
    celery.conf.result_serializer = "json"
    celery.conf.accept_content = ["json"]
    celery.conf.result_persistent = False
    celery.conf.task_track_started = True
    # Notifications are fire-and-forget; nobody reads their results.
    celery.conf.task_ignore_result = True
    return celery


celery_app = make_celery()
