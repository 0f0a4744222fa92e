import httpx
import asyncio
import logging
import time
from rentalops.core.config import settings
from rentalops.core.metrics import webhook_deliveries, webhook_duration

logger = logging.getLogger(__name__)


async def send_webhook(payload: dict, retries: int | None = None) -> bool:
    """POST a booking event to the configured URL, retrying with exponential backoff."""
    if retries is None:
        retries = settings.WEBHOOK_RETRIES

    booking_id = payload.get("booking_id")
    backoff = 1.0

    for attempt in range(1, retries + 1):
        started = time.time()
        try:
            async with httpx.AsyncClient(timeout=settings.WEBHOOK_TIMEOUT) as client:
                response = await client.post(settings.WEBHOOK_URL, json=payload)

            if 200 <= response.status_code < 300:
                webhook_deliveries.labels(status="success", retry_count=str(attempt - 1)).inc()
                webhook_duration.labels(status="success").observe(time.time() - started)
                logger.info(f"Webhook delivery succeeded for booking {booking_id}")
                return True
            logger.warning(
                f"Webhook delivery failed (attempt {attempt}/{retries}): "
                f"Status {response.status_code} for booking {booking_id}"
            )
        except httpx.TimeoutException:
            logger.warning(f"Webhook timeout (attempt {attempt}/{retries}) for booking {booking_id}")
        except Exception as e:
            logger.warning(
                f"Webhook delivery error (attempt {attempt}/{retries}): {e} for booking {booking_id}"
            )

        webhook_duration.labels(status="failure").observe(time.time() - started)
        if attempt < retries:
            await asyncio.sleep(backoff)
            backoff *= 2.0

    webhook_deliveries.labels(status="failure", retry_count=str(retries)).inc()
    logger.error(f"Webhook delivery failed after {retries} attempts for booking {booking_id}")
    return False
