from celery import Celery
from rentalops.core.config import settings

celery_app = Celery(
    "worker",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_BACKEND,
)
celery_app.conf.task_routes = {"rentalops.services.tasks.reprice_booking": {"queue": "reprice"}}


@celery_app.task(bind=True, max_retries=3)
def reprice_booking(self, booking_id: int):
    import asyncio
    from rentalops.services.tasks_internal import reprice_booking_async

    try:
        asyncio.run(reprice_booking_async(booking_id))
    except Exception as e:
        retry_kwargs = {"countdown": 2 ** self.request.retries}
        raise self.retry(exc=e, **retry_kwargs)
