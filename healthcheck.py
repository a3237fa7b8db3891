#!/usr/bin/env python3
"""
Health check script for Docker containers and deployment.

Pings the configured ledger storage backend and, when the HTTP transfer
gateway is enabled, checks that the transfer service answers.
"""

import asyncio
import sys
from typing import Any

import httpx

from settlement.core.config import settings
from settlement.storage import build_store


async def check_storage() -> dict[str, Any]:
    """Check ledger storage connectivity."""
    store = build_store(settings)
    try:
        if await store.ping():
            return {"status": "healthy", "message": f"{settings.STORAGE_BACKEND} storage reachable"}
        return {"status": "unhealthy", "message": f"{settings.STORAGE_BACKEND} storage ping failed"}
    finally:
        await store.close()


async def check_transfer_service() -> dict[str, Any]:
    """Check that the transfer service accepts connections."""
    if settings.TRANSFER_BACKEND != "http":
        return {"status": "skipped", "message": "Simulated transfer gateway in use"}

    try:
        async with httpx.AsyncClient(base_url=settings.TRANSFER_SERVICE_URL, timeout=5.0) as client:
            response = await client.get("/health")
        if response.status_code < 500:
            return {"status": "healthy", "message": f"Transfer service responded {response.status_code}"}
        return {"status": "unhealthy", "message": f"Transfer service responded {response.status_code}"}
    except httpx.HTTPError as e:
        return {"status": "unhealthy", "message": f"Transfer service error: {e}"}


async def main() -> int:
    """Run health checks."""
    print("🏥 Running health checks...\n")

    results = {
        "storage": await check_storage(),
        "transfer_service": await check_transfer_service(),
    }

    all_healthy = True
    for name, result in results.items():
        icon = "❌" if result["status"] == "unhealthy" else "✅"
        print(f"{icon} {name}: {result['message']}")
        if result["status"] == "unhealthy":
            all_healthy = False

    print()
    if all_healthy:
        print("✅ All health checks passed")
        return 0

    print("❌ Some health checks failed")
    return 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
