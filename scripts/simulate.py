"""
Rush-Hour Simulation Script

Fires a burst of concurrent customer orders at a running server while an
admin stream listener counts the events it receives, then walks every new
order through the kitchen statuses.

Run from project root (server must be up):
    python scripts/simulate.py --orders 50
"""

import argparse
import asyncio
import json
import random
import sys
import time
from datetime import datetime
from typing import Any, Optional

import httpx

# Configuration
API_BASE_URL = "http://localhost:3000"
TOTAL_ORDERS = 50
ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "admin123"

CUSTOMER_NAMES = ["Nid", "Bee", "Tom", "Ploy", "Arm", "Fah", "Mint", "Beam", "", "Joe"]
NOTES = ["", "no chili", "extra rice", "less sweet", "no peanuts"]
MENU_ITEMS = [
    {"name": "Pad Thai", "price": 60},
    {"name": "Green Curry", "price": 80},
    {"name": "Tom Yum Goong", "price": 120},
    {"name": "Som Tum", "price": 50},
    {"name": "Mango Sticky Rice", "price": 70},
    {"name": "Thai Tea", "price": 15},
]
KITCHEN_FLOW = ["preparing", "served"]


def generate_order_payload() -> dict[str, Any]:
    """Random customer order, occasionally with a nameless item to be dropped."""
    items = []
    for _ in range(random.randint(1, 4)):
        item = random.choice(MENU_ITEMS).copy()
        item["qty"] = random.randint(1, 3)
        items.append(item)
    if random.random() < 0.1:
        items.append({"name": "", "price": 999, "qty": 1})

    return {
        "customerName": random.choice(CUSTOMER_NAMES),
        "tableNo": f"T{random.randint(1, 20)}",
        "note": random.choice(NOTES),
        "items": items,
    }


async def send_order(client: httpx.AsyncClient, order_num: int) -> dict[str, Any]:
    """Submit one order and time it."""
    payload = generate_order_payload()
    expected = sum(i["price"] * i["qty"] for i in payload["items"] if i["name"])
    start_time = time.time()

    try:
        response = await client.post(f"{API_BASE_URL}/api/orders", json=payload, timeout=30.0)
        elapsed = round(time.time() - start_time, 3)

        if response.status_code == 201:
            data = response.json()
            return {
                "order_num": order_num,
                "success": True,
                "order_id": data.get("orderId"),
                "total": data.get("total"),
                "total_ok": data.get("total") == expected,
                "time": elapsed,
            }
        return {
            "order_num": order_num,
            "success": False,
            "error": response.text[:100],
            "time": elapsed,
        }
    except httpx.HTTPError as e:
        return {
            "order_num": order_num,
            "success": False,
            "error": str(e)[:100],
            "time": round(time.time() - start_time, 3),
        }


async def login(client: httpx.AsyncClient) -> Optional[str]:
    response = await client.post(
        f"{API_BASE_URL}/api/admin/login",
        json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD},
    )
    if response.status_code != 200:
        print(f"   ❌ Login failed: {response.text[:100]}")
        return None
    return response.json()["token"]


async def listen(token: str, counts: dict[str, int], ready: asyncio.Event) -> None:
    """Count SSE events by type until cancelled."""
    async with httpx.AsyncClient(timeout=None) as client:
        async with client.stream(
            "GET", f"{API_BASE_URL}/api/admin/orders/stream", params={"token": token}
        ) as response:
            event = None
            async for line in response.aiter_lines():
                if line.startswith("event: "):
                    event = line[len("event: "):]
                elif line.startswith("data: ") and event:
                    if event == "order":
                        event = json.loads(line[len("data: "):])["type"]
                    counts[event] = counts.get(event, 0) + 1
                    if event == "ready":
                        ready.set()
                    event = None


async def advance_order(client: httpx.AsyncClient, headers: dict, order_id: int) -> bool:
    """Walk one order through the kitchen statuses."""
    for status in KITCHEN_FLOW:
        response = await client.patch(
            f"{API_BASE_URL}/api/admin/orders/{order_id}/status",
            json={"status": status},
            headers=headers,
        )
        if response.status_code != 200:
            return False
    return True


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(num_orders: int = TOTAL_ORDERS, with_stream: bool = True) -> dict[str, Any]:
    print("=" * 70)
    print("🔥 RUSH-HOUR SIMULATION")
    print("=" * 70)
    print(f"📋 Total Orders: {num_orders}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    counts: dict[str, int] = {}
    listener = None

    async with httpx.AsyncClient() as client:
        token = await login(client)
        if token is None:
            sys.exit(1)
        headers = {"Authorization": f"Bearer {token}"}

        if with_stream:
            ready = asyncio.Event()
            listener = asyncio.create_task(listen(token, counts, ready))
            await asyncio.wait_for(ready.wait(), timeout=10)
            print("\n📡 Stream listener connected")

        print("\n🚀 Firing customer orders...\n")
        start_time = time.time()
        results = await asyncio.gather(*(send_order(client, i + 1) for i in range(num_orders)))
        submit_time = round(time.time() - start_time, 2)

        successful = [r for r in results if r["success"]]
        print("👨‍🍳 Advancing orders through the kitchen...\n")
        advanced = await asyncio.gather(
            *(advance_order(client, headers, r["order_id"]) for r in successful)
        )

        # Let the last events arrive
        await asyncio.sleep(1)
        if listener:
            listener.cancel()
            await asyncio.gather(listener, return_exceptions=True)

    failed = [r for r in results if not r["success"]]
    bad_totals = [r for r in successful if not r["total_ok"]]

    print("=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"\n✅ Successful Orders: {len(successful)}/{num_orders}")
    print(f"❌ Failed Orders: {len(failed)}/{num_orders}")
    print(f"🧮 Totals mismatched: {len(bad_totals)}")
    print(f"🍽️  Fully served: {sum(advanced)}/{len(successful)}")
    print(f"⏱️  Submit Time: {submit_time}s")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        print(f"\n📈 Average Response: {avg_time}s")
        print(f"   💰 Total Revenue: {sum(r['total'] for r in successful)}")

    if with_stream:
        print(f"\n📡 Stream events: {counts}")
        expected_updates = sum(advanced) * len(KITCHEN_FLOW)
        print(f"   order_created expected {len(successful)}, got {counts.get('order_created', 0)}")
        print(f"   order_updated expected {expected_updates}, got {counts.get('order_updated', 0)}")

    if failed:
        print(f"\n⚠️  Failed Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}")

    print("\n" + "=" * 70)
    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "stream_counts": counts,
    }


async def preflight() -> bool:
    """Check the server is reachable before the burst."""
    async with httpx.AsyncClient() as client:
        try:
            response = await client.get(f"{API_BASE_URL}/api/health")
        except httpx.HTTPError as e:
            print(f"❌ Server unreachable: {e}")
            return False
    print(f"✅ Health: {response.json()}")
    return response.status_code == 200


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Rush-Hour Simulation Script")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--no-stream", action="store_true", help="Skip the stream listener")
    parser.add_argument("--url", default=API_BASE_URL, help="Server base URL")
    args = parser.parse_args()

    API_BASE_URL = args.url.rstrip("/")

    if not asyncio.run(preflight()):
        sys.exit(1)

    asyncio.run(run_simulation(num_orders=args.orders, with_stream=not args.no_stream))
