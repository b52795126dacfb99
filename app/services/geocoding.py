"""
Address -> coordinates via the Google Geocoding API.

Used opportunistically on ride creation: any failure yields None (unresolved)
and the ride is created without coordinates.
"""
import logging

import httpx

from app.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


async def geocode(address: str, client: httpx.AsyncClient | None = None) -> tuple[float, float] | None:
    if not settings.geocoding_api_key:
        return None
    if client is None:
        async with httpx.AsyncClient(timeout=settings.geocoding_timeout_seconds) as own_client:
            return await _lookup(own_client, address)
    return await _lookup(client, address)


async def _lookup(client: httpx.AsyncClient, address: str) -> tuple[float, float] | None:
    try:
        resp = await client.get(
            f"{settings.geocoding_base_url}/geocode/json",
            params={"address": address, "key": settings.geocoding_api_key},
        )
        resp.raise_for_status()
        data = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Geocoding failed for %r: %s", address, exc)
        return None

    if data.get("status") != "OK" or not data.get("results"):
        logger.info("Address not found: %r (status=%s)", address, data.get("status"))
        return None

    location = data["results"][0]["geometry"]["location"]
    return location["lat"], location["lng"]
