"""
Time cold and warm lead searches and print the plan annotation per query shape
"""

import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import argparse
import math
import time
from typing import Dict, List

from leadsearch.cache import MemoryCacheStore
from leadsearch.database import LeadRepository, get_session_factory
from leadsearch.search import LeadSearchEngine

QUERY_SHAPES = {
    "default listing": {},
    "status + created_at": {"status": "validated", "sort_by": "created_at"},
    "city": {"city": "Austin"},
    "state + city": {"state": "TX", "city": "Austin"},
    "category + website": {"category": "plumber", "has_website": "true"},
    "rating range": {"min_rating": "4", "max_rating": "5", "sort_by": "google_rating"},
    "name contains": {"business_name_contains": "acme"},
}


def percentile(sorted_values: List[float], pct: float) -> float:
    if not sorted_values:
        return 0.0
    index = math.ceil((pct / 100) * len(sorted_values)) - 1
    return sorted_values[max(0, min(len(sorted_values) - 1, index))]


def summarize(samples: List[float]) -> Dict[str, float]:
    ordered = sorted(samples)
    return {
        "min": round(ordered[0], 2),
        "avg": round(sum(ordered) / len(ordered), 2),
        "p95": round(percentile(ordered, 95), 2),
        "max": round(ordered[-1], 2),
    }


def time_search(engine: LeadSearchEngine, raw: Dict) -> float:
    start = time.perf_counter()
    engine.search(raw)
    return (time.perf_counter() - start) * 1000


def main():
    parser = argparse.ArgumentParser(description="Benchmark cold vs warm lead searches")
    parser.add_argument("--iterations", type=int, default=15)
    args = parser.parse_args()

    repository = LeadRepository(get_session_factory())

    for name, raw in QUERY_SHAPES.items():
        cold_samples, warm_samples = [], []
        for _ in range(max(1, args.iterations)):
            # A fresh store per iteration keeps the first call cold
            engine = LeadSearchEngine(repository, MemoryCacheStore())
            cold_samples.append(time_search(engine, raw))
            warm_samples.append(time_search(engine, raw))

        plan = engine.search(raw).query_plan
        print(f"{name}")
        print(f"  cold ms: {summarize(cold_samples)}")
        print(f"  warm ms: {summarize(warm_samples)}")
        print(f"  indexes: {plan.indexed_filters or '-'}")
        print(f"  uses indexed filter: {plan.explain_checks.uses_indexed_filter}"
              f" (unindexed: {plan.explain_checks.unindexed_filters or '-'})")


if __name__ == "__main__":
    main()
