# meetmind/infra/timings.py
from __future__ import annotations
import json
import time
from typing import Dict, List
import statistics
from fastapi import FastAPI

# one list per kind; no locks, single-threaded event loop
_TIMINGS: Dict[str, List[float]] = {}


def now_ts() -> float:
    # monotonic for durations
    return time.perf_counter()


def record_timing(kind: str, value: float) -> None:
    lst = _TIMINGS.get(kind)
    if lst is None:
        lst = []
        _TIMINGS[kind] = lst
    lst.append(float(value))


class timeit:
    """async usage:
        async with timeit("payments.sync") as t:
            await fn()
        print(t.elapsed_ms)
    """
    __slots__ = ("_kind", "_t0", "elapsed")

    def __init__(self, kind: str):
        self._kind = kind
        self._t0 = 0.0
        self.elapsed = 0.0

    @property
    def elapsed_ms(self) -> int:
        return int(round(self.elapsed * 1000))

    async def __aenter__(self):
        self._t0 = now_ts()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.elapsed = now_ts() - self._t0
        record_timing(self._kind, self.elapsed)


def _mean_std(values: list[float]) -> tuple[float, float]:
    if not values:
        return 0.0, 0.0
    return (
        statistics.mean(values),
        statistics.stdev(values) if len(values) > 1 else 0.0
    )


def aggregates() -> List[Dict[str, float]]:
    # {"kind","n","mean","std"} per kind, seconds
    out = []
    for kind, vals in sorted(_TIMINGS.items()):
        mean, std = _mean_std(vals)
        out.append({"kind": kind, "n": len(vals), "mean": mean, "std": std})
    return out


def reset() -> None:
    _TIMINGS.clear()


def install_shutdown_report(app: FastAPI):
    """Print per-kind timing aggregates when the app shuts down."""

    @app.on_event("shutdown")
    async def _report_on_shutdown():
        rows = aggregates()
        if not rows:
            return
        print("[TIMINGS] handler timings (seconds):")
        for rec in rows:
            print("   ", json.dumps(rec, separators=(",", ":")))
        reset()
