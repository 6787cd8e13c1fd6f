"""
Prefect Workflow Orchestration - Rollup Refresh

Scheduled trigger for the rollup engine. The flows only call the rollup
API; retry policy for transient failures lives here, the engine itself
never retries.
"""

import asyncio
from typing import List, Optional

import httpx
from prefect import flow, task, get_run_logger

from rollup_engine.config import get_settings

settings = get_settings()

RETRYABLE_STATUS_CODES = {500, 502, 503, 504}


# =============================================================================
# TASKS
# =============================================================================

@task(
    name="list_rollups",
    description="Fetch rollup freshness from the API",
    retries=3,
    retry_delay_seconds=10,
)
async def list_rollups(api_url: str) -> List[dict]:
    async with httpx.AsyncClient(base_url=api_url, timeout=30.0) as client:
        response = await client.get("/rollups")
        response.raise_for_status()
        return response.json()


@task(
    name="refresh_rollup",
    description="Refresh one rollup through the API",
    retries=3,
    retry_delay_seconds=60,
)
async def refresh_rollup(api_url: str, name: str) -> dict:
    """
    Refresh one rollup.

    A refresh already running (409) counts as done; failures and timeouts
    raise so the task is retried.
    """
    logger = get_run_logger()

    async with httpx.AsyncClient(
        base_url=api_url,
        timeout=settings.trigger.request_timeout_seconds,
    ) as client:
        response = await client.post(f"/rollups/{name}/refresh")

    result = response.json()
    if response.status_code == 409:
        logger.info(f"Refresh of {name} already in progress, skipping")
        return result
    if response.status_code in RETRYABLE_STATUS_CODES:
        error = result.get("error") or {}
        raise RuntimeError(f"Refresh of {name} returned {response.status_code}: {error.get('message')}")
    response.raise_for_status()

    logger.info(
        f"Refreshed {name}: {result['row_count']} rows in {result['elapsed_ms']:.0f}ms"
    )
    return result


@task(
    name="send_alert",
    description="Send alert notification",
)
async def send_alert(
    alert_type: str,
    message: str,
    severity: str = "info",
) -> None:
    """Send alert notification"""
    logger = get_run_logger()
    logger.warning(f"[{severity.upper()}] {alert_type}: {message}")


# =============================================================================
# FLOWS
# =============================================================================

@flow(
    name="refresh_rollups",
    description="Refresh every rollup snapshot",
)
async def refresh_rollups(
    names: Optional[List[str]] = None,
    api_url: Optional[str] = None,
) -> dict:
    """
    Refresh rollups concurrently, one task per rollup.

    A rollup that still fails after its retries is reported without
    stopping the others.
    """
    logger = get_run_logger()
    api_url = api_url or settings.trigger.api_url

    if names is None:
        names = [r["rollup"] for r in await list_rollups(api_url)]
    logger.info(f"Refreshing rollups: {', '.join(names)}")

    outcomes = await asyncio.gather(
        *(refresh_rollup(api_url, name) for name in names),
        return_exceptions=True,
    )

    results = {"refreshed": [], "failed": {}}
    for name, outcome in zip(names, outcomes):
        if isinstance(outcome, Exception):
            results["failed"][name] = str(outcome)
        else:
            results["refreshed"].append(name)

    if results["failed"]:
        await send_alert(
            alert_type="Rollup Refresh Failed",
            message=f"Failed rollups: {', '.join(results['failed'])}",
            severity="critical",
        )
        results["status"] = "partial" if results["refreshed"] else "failed"
    else:
        results["status"] = "success"

    logger.info(f"Rollup refresh {results['status']}: {len(results['refreshed'])}/{len(names)} refreshed")
    return results


@flow(
    name="rollup_freshness_check",
    description="Alert on rollups that are stale or were never refreshed",
)
async def rollup_freshness_check(
    max_staleness_seconds: float = 3600.0,
    api_url: Optional[str] = None,
) -> dict:
    logger = get_run_logger()
    api_url = api_url or settings.trigger.api_url

    summaries = await list_rollups(api_url)
    stale = [
        s["rollup"]
        for s in summaries
        if not s["initialized"] or (s["staleness_seconds"] or 0) > max_staleness_seconds
    ]

    if stale:
        await send_alert(
            alert_type="Stale Rollups",
            message=f"Rollups older than {max_staleness_seconds:.0f}s or uninitialized: {', '.join(stale)}",
            severity="warning",
        )

    logger.info(f"Freshness check complete: {len(stale)}/{len(summaries)} stale")
    return {"checked": len(summaries), "stale": stale}


# =============================================================================
# DEPLOYMENT CONFIGURATION
# =============================================================================

if __name__ == "__main__":
    asyncio.run(refresh_rollups())
