import asyncio
from celery import Celery
from moveprice.core.config import settings

celery_app = Celery(
    "worker",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_BACKEND,
)
celery_app.conf.task_routes = {
    "moveprice.services.tasks.sweep_expired_task": {"queue": "negotiation"},
    "moveprice.services.tasks.dispatch_status_events_task": {"queue": "events"},
}
celery_app.conf.beat_schedule = {
    "sweep-expired": {
        "task": "moveprice.services.tasks.sweep_expired_task",
        "schedule": float(settings.SWEEP_INTERVAL_SECONDS),
    },
    "dispatch-status-events": {
        "task": "moveprice.services.tasks.dispatch_status_events_task",
        "schedule": float(settings.EVENT_DISPATCH_INTERVAL_SECONDS),
    },
}


@celery_app.task(bind=True, max_retries=3)
def sweep_expired_task(self):
    from moveprice.services.tasks_internal import sweep_expired_async

    try:
        return asyncio.run(sweep_expired_async())
    except Exception as e:
        retry_kwargs = {"countdown": 2 ** self.request.retries}
        raise self.retry(exc=e, **retry_kwargs)


@celery_app.task(bind=True, max_retries=3)
def dispatch_status_events_task(self):
    from moveprice.services.tasks_internal import dispatch_status_events_async

    try:
        return asyncio.run(dispatch_status_events_async())
    except Exception as e:
        retry_kwargs = {"countdown": 2 ** self.request.retries}
        raise self.retry(exc=e, **retry_kwargs)
