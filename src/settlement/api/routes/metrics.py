"""Metrics endpoint."""

from typing import Any

from fastapi import APIRouter

from settlement.core.deps import MetricsDep

router = APIRouter()


@router.get("/metrics")
async def get_metrics(metrics: MetricsDep) -> dict[str, Any]:
    """Exchange request counters and timings."""
    return metrics.snapshot()
