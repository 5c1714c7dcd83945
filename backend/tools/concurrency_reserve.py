#!/usr/bin/env python3
"""
Hammer one sweet with concurrent reserve or purchase calls against a running
server and report how many succeeded. With Q units in stock and N workers
asking for q each, at most Q // q calls may succeed and stock must end >= 0.

    python tools/concurrency_reserve.py --email a@example.com --password secret reserve --product 1 --workers 16
"""
import argparse
import concurrent.futures
import os
from collections import Counter

import requests

BASE = os.environ.get("SWEETSHOP_BASE", "http://127.0.0.1:8000")


def login(email, password):
    r = requests.post(f"{BASE}/api/auth/login", json={"email": email, "password": password}, timeout=10)
    r.raise_for_status()
    return r.json()["accessToken"]


def reserve_task(i, token, product_id, qty):
    headers = {"Authorization": f"Bearer {token}"}
    try:
        r = requests.post(
            f"{BASE}/api/cart/reserve", json={"productId": product_id, "quantity": qty}, headers=headers, timeout=20
        )
        return (i, r.status_code, r.json())
    except requests.RequestException as e:
        return (i, "ERR", str(e))


def purchase_task(i, token, product_id, qty):
    headers = {"Authorization": f"Bearer {token}"}
    try:
        r = requests.post(
            f"{BASE}/api/sweets/{product_id}/purchase", json={"quantity": qty}, headers=headers, timeout=20
        )
        return (i, r.status_code, r.json())
    except requests.RequestException as e:
        return (i, "ERR", str(e))


def run(mode, workers, token, product_id, qty):
    before = requests.get(f"{BASE}/api/sweets/{product_id}", timeout=10).json()["quantity"]
    print(f"Running {mode} test: workers={workers}, product={product_id}, qty={qty}, stock_before={before}")
    task = reserve_task if mode == "reserve" else purchase_task
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as ex:
        futures = [ex.submit(task, i, token, product_id, qty) for i in range(workers)]
        results = [f.result() for f in futures]
    after = requests.get(f"{BASE}/api/sweets/{product_id}", timeout=10).json()["quantity"]

    codes = Counter(r[1] for r in results)
    ok = codes.get(200, 0)
    print("Status codes:", dict(codes))
    print("Unique transaction ids:", len({r[2].get("transactionId") for r in results if r[1] == 200}))
    print(f"stock_after={after}, expected={before - ok * qty}")
    if after < 0 or after != before - ok * qty or ok > before // qty:
        print("OVERSELL DETECTED")
        return 1
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Concurrency probe for stock reservation.")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    sub = parser.add_subparsers(dest="mode", required=True)
    for name in ("reserve", "purchase"):
        p = sub.add_parser(name)
        p.add_argument("--product", type=int, required=True)
        p.add_argument("--qty", type=int, default=1)
        p.add_argument("--workers", type=int, default=8)

    args = parser.parse_args()
    token = login(args.email, args.password)
    raise SystemExit(run(args.mode, args.workers, token, args.product, args.qty))
