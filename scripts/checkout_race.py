"""Fire concurrent checkout creations for one table/slot and count winners.

Against a correctly serialized store exactly one request gets a session URL
and every other one gets a 409.
"""

import argparse
import asyncio
import time
from collections import Counter
from uuid import uuid4

import httpx


async def send_one(client: httpx.AsyncClient, base_url: str, args, idx: int):
    """Send one checkout request and return (status_code, latency_ms)."""

    started = time.perf_counter()
    payload = {
        "table_ids": [args.table_id],
        "email": f"race-{idx}@example.com",
        "booking_date": args.date,
        "booking_time": args.time,
        "total_amount_minor": 1000,
        "customer_name": f"Race {idx}",
        "party_size": 2,
        "tenant_id": args.tenant_id,
        "booking_ref": f"race-{uuid4()}",
    }
    try:
        resp = await client.post(f"{base_url}/api/create-checkout", json=payload)
        return resp.status_code, (time.perf_counter() - started) * 1000
    except httpx.HTTPError:
        return 599, (time.perf_counter() - started) * 1000


async def run(args) -> int:
    async with httpx.AsyncClient(timeout=15.0) as client:
        results = await asyncio.gather(*(send_one(client, args.base_url, args, i) for i in range(args.total)))

    codes = Counter(code for code, _ in results)
    slowest = max(latency for _, latency in results)
    print(f"total={args.total}")
    for code, count in sorted(codes.items()):
        print(f"status_{code}={count}")
    print(f"slowest_ms={slowest:.2f}")
    winners = codes.get(200, 0)
    if winners > 1:
        print(f"DOUBLE HOLD: {winners} requests obtained a hold on table {args.table_id}")
        return 1
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--total", type=int, default=20)
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--tenant-id", default="t1")
    parser.add_argument("--table-id", type=int, default=5)
    parser.add_argument("--date", default="2025-06-01")
    parser.add_argument("--time", default="19:00")
    raise SystemExit(asyncio.run(run(parser.parse_args())))
