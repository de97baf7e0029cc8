"""
Seed event generator -- writes synthetic metric events into MongoDB through
the QueryCompiler insert path, then runs a sample aggregated query.

Generates:
  - ~5 000 events spread over the last 7 days
  - a handful of regions / devices / event names as dimensions
  - a numeric ``value`` measure (some events leave the timestamp unset so
    the server fills it in)

Run:  python -m pipelines.seed.seed_events
"""
from __future__ import annotations

import asyncio
import random
from datetime import datetime, timedelta, timezone

from faker import Faker

from chronoquery.compiler.service import QueryCompiler
from chronoquery.compiler.spec import QuerySpec
from chronoquery.core.config import CompilerConfig
from chronoquery.store.mongo import get_store

fake = Faker()
Faker.seed(42)
random.seed(42)

# ── Tunables ─────────────────────────────────────────────
NAMESPACE = "testMetrics"
NUM_EVENTS = 5_000
WINDOW = timedelta(days=7)
NOW_FRACTION = 0.05  # share of events sent without a timestamp

REGIONS = ["us", "eu", "apac", "latam"]
DEVICES = ["mobile", "desktop", "tablet"]
EVENTS = ["page_view", "signup", "checkout", "search"]


def _event(now: datetime) -> dict:
    doc = {
        "event": random.choice(EVENTS),
        "region": random.choice(REGIONS),
        "device": random.choice(DEVICES),
        "user": fake.user_name(),
        "value": random.randint(1, 100),
    }
    if random.random() >= NOW_FRACTION:
        doc["ts"] = now - timedelta(seconds=random.randint(0, int(WINDOW.total_seconds())))
    return doc


async def main() -> None:
    compiler = QueryCompiler(get_store(), CompilerConfig.from_settings())
    now = datetime.now(timezone.utc)

    print(f"Inserting {NUM_EVENTS:,} events into '{NAMESPACE}' …")
    for _ in range(NUM_EVENTS):
        await compiler.insert(NAMESPACE, _event(now))

    spec = QuerySpec(
        namespace=NAMESPACE,
        range="7 Days",
        dimensions=[{"field": "region"}],
        measures=[{"field": "value", "sort": "descending"}, {"field": "count"}],
        granularity="all",
        debug=True,
    )
    for row in await compiler.query(spec):
        print(row)
    print("✅ Seed complete!")


if __name__ == "__main__":
    asyncio.run(main())
