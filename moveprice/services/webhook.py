import httpx
import asyncio
import logging
import time
from moveprice.core.config import settings
from moveprice.core.metrics import webhook_deliveries, webhook_duration

logger = logging.getLogger(__name__)


async def send_webhook(payload: dict, retries: int | None = None, backoff: float = 1.0) -> bool:

    if retries is None:
        retries = settings.WEBHOOK_RETRIES

    event_ref = f"event {payload.get('event_id')} ({payload.get('type')})"

    for attempt in range(1, retries + 1):
        started = time.time()
        try:
            async with httpx.AsyncClient(timeout=settings.WEBHOOK_TIMEOUT) as client:
                response = await client.post(settings.WEBHOOK_URL, json=payload)

                if 200 <= response.status_code < 300:
                    webhook_deliveries.labels(status="success", retry_count=attempt - 1).inc()
                    webhook_duration.labels(status="success").observe(time.time() - started)
                    logger.info(f"Webhook delivery succeeded for {event_ref}")
                    return True
                else:
                    logger.warning(
                        f"Webhook delivery failed (attempt {attempt}/{retries}): "
                        f"Status {response.status_code} for {event_ref}"
                    )
        except httpx.TimeoutException:
            logger.warning(
                f"Webhook timeout (attempt {attempt}/{retries}) for {event_ref}"
            )
        except httpx.HTTPError as e:
            logger.warning(
                f"Webhook delivery error (attempt {attempt}/{retries}): {e} "
                f"for {event_ref}"
            )

        webhook_deliveries.labels(status="failure", retry_count=attempt - 1).inc()
        webhook_duration.labels(status="failure").observe(time.time() - started)

        if attempt < retries:
            await asyncio.sleep(backoff)
            backoff *= 2.0

    logger.error(f"Webhook delivery failed after {retries} attempts for {event_ref}")
    return False
