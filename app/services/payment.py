"""
PSP refund adapter.

Without a configured API key the PSP call is simulated so that local and test
environments record a reference without moving money.
"""
import asyncio
import logging
import uuid
from decimal import Decimal

import httpx

from app.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


class PSPError(Exception):
    pass


async def refund(
    booking_id: str,
    amount: Decimal,
    payment_method: str,
    idempotency_key: str,
) -> dict:
    """
    Sends a refund to the PSP with retries (exponential backoff).
    Returns: {"psp_ref": str | None, "status": "SUCCESS"/"FAILED"}
    """
    attempts = settings.psp_max_attempts
    for attempt in range(1, attempts + 1):
        try:
            result = await _call_psp(booking_id, amount, payment_method, idempotency_key)
            logger.info("PSP refund success: ref=%s booking=%s amount=%s", result["psp_ref"], booking_id, amount)
            return result
        except PSPError as e:
            if attempt == attempts:
                logger.error("PSP refund failed after %d attempts for booking=%s: %s", attempts, booking_id, e)
                return {"psp_ref": None, "status": "FAILED"}
            await asyncio.sleep(2 ** attempt)

    return {"psp_ref": None, "status": "FAILED"}


async def _call_psp(booking_id: str, amount: Decimal, payment_method: str, idempotency_key: str) -> dict:
    if amount <= 0:
        raise PSPError("Refund amount must be positive")

    if not settings.psp_api_key:
        return {
            "psp_ref": f"RF-{uuid.uuid4().hex[:12].upper()}",
            "status": "SUCCESS",
        }

    try:
        async with httpx.AsyncClient(timeout=settings.psp_timeout_seconds) as client:
            resp = await client.post(
                f"{settings.psp_base_url}/refunds",
                headers={
                    "Authorization": f"Bearer {settings.psp_api_key}",
                    "Idempotency-Key": idempotency_key,
                },
                data={
                    "amount": int(amount * 100),
                    "metadata[booking_id]": booking_id,
                    "metadata[payment_method]": payment_method,
                },
            )
    except httpx.HTTPError as exc:
        raise PSPError(f"PSP unreachable: {exc}") from exc

    if resp.status_code >= 400:
        raise PSPError(f"PSP error {resp.status_code}: {resp.text}")
    return {"psp_ref": resp.json()["id"], "status": "SUCCESS"}
