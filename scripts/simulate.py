"""
Maintenance Propagation Simulation

Starts a crowd of polling clients against a running server, flips
maintenance mode as an admin and measures how long each client takes to
observe the change.

Run from project root: python scripts/simulate.py --clients 50
"""

import asyncio
import sys
import os
import time
import argparse
from datetime import datetime
from typing import Any, Optional

import httpx
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:8001"
STATUS_PATH = "/api/system-settings/maintenance-status"
MAINTENANCE_PATH = "/api/system-settings/maintenance"
TOTAL_CLIENTS = 20
POLL_INTERVAL = 1.0
ADMIN_USER_ID = "1"


# =============================================================================
# POLLING CLIENTS
# =============================================================================

async def poll_until(
    client: httpx.AsyncClient,
    client_num: int,
    expected: bool,
    flipped_at: asyncio.Future,
    interval: float,
    timeout: float,
) -> dict[str, Any]:
    """Poll the status endpoint until isActive equals ``expected``."""
    deadline = time.time() + timeout
    polls = 0
    errors = 0

    while time.time() < deadline:
        polls += 1
        try:
            response = await client.get(STATUS_PATH, timeout=10.0)
            response.raise_for_status()
            if response.json().get("isActive") == expected and flipped_at.done():
                return {
                    "client_num": client_num,
                    "success": True,
                    "lag": round(time.time() - flipped_at.result(), 3),
                    "polls": polls,
                    "errors": errors,
                }
        except (httpx.HTTPError, ValueError):
            errors += 1
        await asyncio.sleep(interval)

    return {
        "client_num": client_num,
        "success": False,
        "error": f"no change observed within {timeout}s",
        "polls": polls,
        "errors": errors,
    }


async def flip_maintenance(
    client: httpx.AsyncClient,
    active: bool,
    targeting: str,
    admin_id: str,
) -> Optional[float]:
    """Toggle maintenance as an admin; returns the time of the confirmed write."""
    response = await client.patch(
        MAINTENANCE_PATH,
        json={
            "isActive": active,
            "targetingType": targeting,
            "message": "Propagation drill in progress",
            "updatedBy": admin_id,
        },
        headers={"X-User-Id": admin_id},
        timeout=30.0,
    )
    if response.status_code != 200:
        print(f"   ❌ Toggle failed: {response.status_code} {response.text[:100]}")
        return None
    return time.time()


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(
    num_clients: int = TOTAL_CLIENTS,
    interval: float = POLL_INTERVAL,
    targeting: str = "all",
    admin_id: str = ADMIN_USER_ID,
) -> dict[str, Any]:
    """
    Run the propagation drill.

    Args:
        num_clients: Number of concurrent polling clients
        interval: Seconds between polls of each client
        targeting: Targeting type used for the drill rule
        admin_id: User id sent as the admin making the change
    """
    print("=" * 70)
    print("🛠️  MAINTENANCE PROPAGATION DRILL")
    print("=" * 70)
    print(f"📋 Clients: {num_clients}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"🔁 Poll interval: {interval}s")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    timeout = max(30.0, interval * 10)
    report = {}

    async with httpx.AsyncClient(base_url=API_BASE_URL) as client:
        response = await client.get(STATUS_PATH)
        response.raise_for_status()
        initial = bool(response.json().get("isActive"))
        print(f"\nCurrent maintenance: {'ACTIVE' if initial else 'inactive'}")

        for phase, target in (("enable", not initial), ("restore", initial)):
            print(f"\n🚀 Phase '{phase}': switching maintenance {'on' if target else 'off'}...")
            flipped_at: asyncio.Future = asyncio.get_running_loop().create_future()
            pollers = [
                asyncio.create_task(
                    poll_until(client, i + 1, target, flipped_at, interval, timeout)
                )
                for i in range(num_clients)
            ]

            await asyncio.sleep(interval)
            written = await flip_maintenance(client, target, targeting, admin_id)
            if written is None:
                for task in pollers:
                    task.cancel()
                await asyncio.gather(*pollers, return_exceptions=True)
                break
            flipped_at.set_result(written)

            results = await asyncio.gather(*pollers)
            report[phase] = results
            print_phase(phase, results)

    return report


def print_phase(phase: str, results: list[dict[str, Any]]) -> None:
    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]

    print(f"\n📊 Results for '{phase}'")
    print(f"   ✅ Observed change: {len(successful)}/{len(results)}")
    print(f"   ❌ Missed: {len(failed)}/{len(results)}")

    if successful:
        lags = [r["lag"] for r in successful]
        print(f"   Average lag: {round(sum(lags) / len(lags), 3)}s")
        print(f"   Fastest: {min(lags)}s")
        print(f"   Slowest: {max(lags)}s")

    transport_errors = sum(r["errors"] for r in results)
    if transport_errors:
        print(f"   ⚠️  Poll errors: {transport_errors}")


def main():
    global API_BASE_URL

    parser = argparse.ArgumentParser(description="Maintenance propagation drill")
    parser.add_argument("--clients", type=int, default=TOTAL_CLIENTS, help="Polling clients")
    parser.add_argument("--interval", type=float, default=POLL_INTERVAL, help="Poll interval (s)")
    parser.add_argument(
        "--targeting",
        default="all",
        choices=["all", "specific", "department", "year", "year_department"],
        help="Targeting type for the drill rule",
    )
    parser.add_argument("--admin-id", default=ADMIN_USER_ID, help="Admin user id")
    parser.add_argument("--url", default=API_BASE_URL, help="API base URL")
    args = parser.parse_args()

    API_BASE_URL = args.url.rstrip("/")
    asyncio.run(
        run_simulation(
            num_clients=args.clients,
            interval=args.interval,
            targeting=args.targeting,
            admin_id=args.admin_id,
        )
    )


if __name__ == "__main__":
    main()
