#!/usr/bin/env python3
"""Synthetic consistency probe for the cart service.

Fires a burst of concurrent add-item requests for a single synthetic guest,
then reads the cart back and checks that the burst landed in one cart whose
denormalized totals match its items. Optionally verifies that the service's
retry/conflict counters behaved. Intended for scheduled synthetic checks
against staging.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import re
import time
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Sequence

import httpx

GUEST_COOKIE = "_guest_id"

_METRIC_LINE = re.compile(
    r"^(?P<name>[a-zA-Z_:][a-zA-Z0-9_:]*)(?:\{(?P<labels>[^}]*)\})?\s+(?P<value>[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?)$"
)
_LABEL = re.compile(r'(?P<key>[a-zA-Z_][a-zA-Z0-9_]*)="(?P<value>(?:[^"\\]|\\.)*)"')


@dataclass(slots=True)
class MetricSample:
    name: str
    labels: Mapping[str, str]
    value: float


class ProbeError(RuntimeError):
    def __init__(self, message: str, *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.context = dict(context or {})


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Synthetic consistency probe for cart service")
    parser.add_argument(
        "--base-url",
        default=os.getenv("CART_BASE_URL", "http://127.0.0.1:8000"),
        help="Base URL for the cart service (default: %(default)s or CART_BASE_URL)",
    )
    parser.add_argument(
        "--org-id",
        default=os.getenv("CART_PROBE_ORG_ID", "synthetic"),
        help="Organisation to probe (default: %(default)s or CART_PROBE_ORG_ID)",
    )
    parser.add_argument(
        "--product-id",
        action="append",
        dest="product_ids",
        default=None,
        help="Product id to add; repeat for several (default: CART_PROBE_PRODUCT_IDS, comma separated)",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=8,
        help="Number of concurrent add-item requests (default: %(default)s)",
    )
    parser.add_argument(
        "--metrics-path",
        default=os.getenv("CART_METRICS_PATH", "/metrics"),
        help="Path to Prometheus metrics endpoint (default: %(default)s or CART_METRICS_PATH)",
    )
    parser.add_argument(
        "--skip-metrics",
        action="store_true",
        help="Skip verification of Prometheus metric deltas",
    )
    parser.add_argument(
        "--request-timeout",
        type=float,
        default=5.0,
        help="HTTP client timeout in seconds (default: %(default)s)",
    )
    parser.add_argument(
        "--keep-cart",
        action="store_true",
        help="Leave the synthetic cart in place instead of clearing it",
    )
    args = parser.parse_args()
    if not args.product_ids:
        raw = os.getenv("CART_PROBE_PRODUCT_IDS", "")
        args.product_ids = [value.strip() for value in raw.split(",") if value.strip()]
    if not args.product_ids:
        parser.error("at least one --product-id (or CART_PROBE_PRODUCT_IDS) is required")
    return args


def parse_metrics(text: str) -> List[MetricSample]:
    samples: List[MetricSample] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        match = _METRIC_LINE.match(stripped)
        if not match:
            continue
        labels = {label.group("key"): label.group("value") for label in _LABEL.finditer(match.group("labels") or "")}
        samples.append(MetricSample(name=match.group("name"), labels=labels, value=float(match.group("value"))))
    return samples


def metric_total(samples: Sequence[MetricSample], name: str, **labels: str) -> float:
    return sum(
        sample.value
        for sample in samples
        if sample.name == name and all(sample.labels.get(key) == value for key, value in labels.items())
    )


async def fetch_metrics(client: httpx.AsyncClient, path: str) -> List[MetricSample]:
    response = await client.get(path)
    response.raise_for_status()
    return parse_metrics(response.text)


async def _add_item(
    client: httpx.AsyncClient, org_id: str, guest_id: str, product_id: str
) -> tuple[int, float, str]:
    start = time.monotonic()
    response = await client.post(
        f"/carts/{org_id}/items",
        json={"productId": product_id, "quantity": 1},
        headers={"Cookie": f"{GUEST_COOKIE}={guest_id}"},
    )
    duration = (time.monotonic() - start) * 1000.0
    cart_id = response.json().get("id", "") if response.status_code == 201 else ""
    return response.status_code, duration, cart_id


def check_cart(cart: Mapping[str, Any], expected_quantities: Mapping[str, int]) -> None:
    items = cart.get("items", [])
    total_items = sum(int(item["quantity"]) for item in items)
    subtotal = sum(Decimal(str(item["itemTotal"])) for item in items)
    if total_items != int(cart["totalItems"]):
        raise ProbeError(
            "totalItems does not match item quantities",
            context={"totalItems": cart["totalItems"], "sum": total_items, "cartId": cart["id"]},
        )
    if subtotal != Decimal(str(cart["subtotal"])):
        raise ProbeError(
            "subtotal does not match item totals",
            context={"subtotal": cart["subtotal"], "sum": str(subtotal), "cartId": cart["id"]},
        )
    actual = {item["productId"]: int(item["quantity"]) for item in items}
    if actual != dict(expected_quantities):
        raise ProbeError(
            "cart lines do not match the requests that succeeded",
            context={"expected": dict(expected_quantities), "actual": actual, "cartId": cart["id"]},
        )


async def run_probe(args: argparse.Namespace) -> Dict[str, Any]:
    timeout = httpx.Timeout(args.request_timeout)
    guest_id = f"synthetic-{uuid.uuid4().hex[:12]}"
    async with httpx.AsyncClient(base_url=args.base_url, timeout=timeout) as client:
        metrics_before: Sequence[MetricSample] = ()
        if not args.skip_metrics:
            metrics_before = await fetch_metrics(client, args.metrics_path)

        products = [args.product_ids[index % len(args.product_ids)] for index in range(args.concurrency)]
        results = await asyncio.gather(
            *(_add_item(client, args.org_id, guest_id, product_id) for product_id in products)
        )

        expected: Dict[str, int] = {}
        cart_ids = set()
        failures = []
        for product_id, (status_code, _, cart_id) in zip(products, results):
            if status_code == 201:
                expected[product_id] = expected.get(product_id, 0) + 1
                cart_ids.add(cart_id)
            else:
                failures.append({"productId": product_id, "status": status_code})
        if not expected:
            raise ProbeError("every add-item request failed", context={"failures": failures})
        if len(cart_ids) != 1:
            raise ProbeError("concurrent adds landed in more than one cart", context={"cartIds": sorted(cart_ids)})

        response = await client.get(
            f"/carts/{args.org_id}", headers={"Cookie": f"{GUEST_COOKIE}={guest_id}"}
        )
        if response.status_code != 200:
            raise ProbeError(
                "Failed to read back the synthetic cart",
                context={"status_code": response.status_code, "body": response.text},
            )
        cart = response.json()
        check_cart(cart, expected)

        retries = conflicts = 0.0
        if not args.skip_metrics:
            metrics_after = await fetch_metrics(client, args.metrics_path)
            retries = metric_total(metrics_after, "cart_transaction_retries_total") - metric_total(
                metrics_before, "cart_transaction_retries_total"
            )
            conflicts = metric_total(metrics_after, "cart_transaction_conflicts_total") - metric_total(
                metrics_before, "cart_transaction_conflicts_total"
            )

        if not args.keep_cart:
            await client.delete(f"/carts/{args.org_id}", headers={"Cookie": f"{GUEST_COOKIE}={guest_id}"})

        latencies = sorted(duration for _, duration, _ in results)
        return {
            "status": "ok",
            "cartId": cart["id"],
            "guestId": guest_id,
            "requests": len(results),
            "failedRequests": failures,
            "totalItems": cart["totalItems"],
            "subtotal": cart["subtotal"],
            "durationsMs": {
                "p50": round(latencies[len(latencies) // 2], 2),
                "max": round(latencies[-1], 2),
            },
            "metrics": {"transactionRetries": retries, "transactionConflicts": conflicts},
        }


async def main_async() -> int:
    args = parse_args()
    try:
        result = await run_probe(args)
    except ProbeError as exc:
        payload = {"status": "error", "message": str(exc), "context": exc.context}
        print(json.dumps(payload, indent=2, sort_keys=True))
        return 1
    except httpx.HTTPError as exc:
        payload = {
            "status": "error",
            "message": str(exc),
            "context": {"exc_type": exc.__class__.__name__},
        }
        print(json.dumps(payload, indent=2, sort_keys=True))
        return 1
    print(json.dumps(result, indent=2, sort_keys=True))
    return 0


def main() -> None:
    exit_code = asyncio.run(main_async())
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
