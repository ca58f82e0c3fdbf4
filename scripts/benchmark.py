#!/usr/bin/env python3
"""Load test / benchmark script for the recommendation feeds.

Usage:
    python scripts/benchmark.py --base-url http://localhost:8000 --concurrency 10 --requests 100
"""

import argparse
import asyncio
import statistics
import time

import httpx

ENDPOINTS = [
    ("/api/v1/recommendations/user-001", {"personalized_limit": "12", "trending_limit": "12"}),
    ("/api/v1/recommendations/user-001/personalized", {"page": "1", "limit": "12"}),
    ("/api/v1/recommendations/user-001/trending", {"page": "2", "limit": "12"}),
    ("/api/v1/recommendations/guest/popular", {"page": "1", "limit": "12"}),
    ("/api/v1/products/prod-001/mixed-recommendations", {"actor_id": "user-001", "limit": "4"}),
    ("/api/v1/products/prod-001/similar", {"limit": "8"}),
    ("/api/v1/health", {}),
]


async def make_request(
    client: httpx.AsyncClient, url: str, params: dict
) -> tuple[str, float, int]:
    start = time.perf_counter()
    try:
        resp = await client.get(url, params=params)
        duration = time.perf_counter() - start
        return url, duration, resp.status_code
    except httpx.HTTPError:
        duration = time.perf_counter() - start
        return url, duration, 0


async def run_benchmark(base_url: str, concurrency: int, total_requests: int) -> None:
    results: dict[str, list[float]] = {ep[0]: [] for ep in ENDPOINTS}
    errors: dict[str, int] = {ep[0]: 0 for ep in ENDPOINTS}

    sem = asyncio.Semaphore(concurrency)

    async def bounded_request(client: httpx.AsyncClient, path: str, params: dict) -> None:
        async with sem:
            _, duration, status = await make_request(client, f"{base_url}{path}", params)
            if 200 <= status < 300:
                results[path].append(duration)
            else:
                errors[path] += 1

    async with httpx.AsyncClient(timeout=30.0) as client:
        tasks = [
            bounded_request(client, *ENDPOINTS[i % len(ENDPOINTS)]) for i in range(total_requests)
        ]
        overall_start = time.perf_counter()
        await asyncio.gather(*tasks)
        overall_duration = time.perf_counter() - overall_start

    print(f"\n{'=' * 70}")
    print("STOREFRONT RECOMMENDER - BENCHMARK REPORT")
    print(f"{'=' * 70}")
    print(f"Total requests: {total_requests} | Concurrency: {concurrency}")
    print(f"Total time: {overall_duration:.2f}s | RPS: {total_requests / overall_duration:.1f}")
    print(f"{'=' * 70}\n")

    for path, latencies in results.items():
        if not latencies:
            print(f"{path}: No successful requests (errors: {errors[path]})")
            continue
        sorted_lat = sorted(latencies)
        p95_idx = min(int(len(sorted_lat) * 0.95), len(sorted_lat) - 1)
        print(f"{path}")
        print(f"  Requests : {len(latencies)} OK, {errors[path]} errors")
        print(f"  Avg      : {statistics.mean(latencies) * 1000:.1f}ms")
        print(f"  P50      : {statistics.median(latencies) * 1000:.1f}ms")
        print(f"  P95      : {sorted_lat[p95_idx] * 1000:.1f}ms")
        print()

    # Server-side counters, if the metrics endpoint answers
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            resp = await client.get(f"{base_url}/api/v1/health/metrics")
    except httpx.HTTPError:
        return
    if resp.status_code != 200:
        return

    snapshot = resp.json()
    print(f"{'=' * 70}")
    print("SERVER-SIDE METRICS")
    print(f"{'=' * 70}")
    for name, value in sorted(snapshot.get("counters", {}).items()):
        print(f"  {name}: {value}")
    for name, stats in sorted(snapshot.get("latencies", {}).items()):
        print(f"  {name}: p50 {stats['p50_ms']}ms / p95 {stats['p95_ms']}ms ({stats['count']})")
    print()


def main() -> None:
    parser = argparse.ArgumentParser(description="Benchmark the storefront recommendation API")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--concurrency", type=int, default=10)
    parser.add_argument("--requests", type=int, default=100)
    args = parser.parse_args()

    asyncio.run(run_benchmark(args.base_url, args.concurrency, args.requests))


if __name__ == "__main__":
    main()
