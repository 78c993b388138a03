"""
Startup cache warming for expensive, rarely-changing responses.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, TYPE_CHECKING

from shared.logging import get_logger
from shared.errors import CacheWarmError
from ..domain.climate_indices import CLIMATE_INDICES, PRIORITY_INDICES
from .response_cache import GEOJSON_TTL, INDICES_TTL, MUNICIPALITIES_TTL, ResponseCache, build_cache_key

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..adapters.climate_store import ClimateDataStore
    from shared.metrics import MetricsCollector


INDICES_PATH = "/api/indices"
MUNICIPALITIES_PATH = "/api/municipalities"
GEOJSON_ROUTE = "/api/climate-data/geojson/{scenario}/{period}/{index}"

DEFAULT_SCENARIO = "ssp245"
DEFAULT_PERIOD = "near-term_2021-2040"
DEFAULT_BATCH_SIZE = 5
DEFAULT_FETCH_TIMEOUT = 30.0


def geojson_path(scenario: str, period: str, index: str) -> str:
    return GEOJSON_ROUTE.format(scenario=scenario, period=period, index=index)


def _batched(items: Sequence[str], size: int) -> Iterable[List[str]]:
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


@dataclass
class WarmReport:
    """Outcome of a warm run."""

    scenario: str
    period: str
    warmed: int = 0
    failed: int = 0
    duration_seconds: float = 0.0
    failures: List[str] = field(default_factory=list)

    def record_success(self) -> None:
        self.warmed += 1

    def record_failure(self, key: str) -> None:
        self.failed += 1
        self.failures.append(key)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenario": self.scenario,
            "period": self.period,
            "warmed": self.warmed,
            "failed": self.failed,
            "duration_seconds": round(self.duration_seconds, 2),
            "failures": list(self.failures),
        }


class CacheWarmer:
    """
    Pre-computes metadata and GeoJSON responses and installs them in the
    response cache under the keys the HTTP layer would use.

    Metadata is warmed first; a hard data-store error there aborts the run
    with :class:`CacheWarmError`. GeoJSON for the configured scenario and
    period is then warmed priority indices first, in sequential batches of
    ``batch_size`` concurrent fetches. Empty results and timeouts are
    counted as failures and never abort the run.
    """

    def __init__(
        self,
        store: "ClimateDataStore",
        *,
        scenario: str = DEFAULT_SCENARIO,
        period: str = DEFAULT_PERIOD,
        indices: Sequence[str] = CLIMATE_INDICES,
        priority_indices: Sequence[str] = PRIORITY_INDICES,
        batch_size: int = DEFAULT_BATCH_SIZE,
        fetch_timeout: Optional[float] = DEFAULT_FETCH_TIMEOUT,
        metrics: Optional["MetricsCollector"] = None,
        dry_run: bool = False,
    ):
        self.store = store
        self.scenario = scenario
        self.period = period
        self.indices = list(indices)
        self.priority_indices = [code for code in priority_indices if code in self.indices]
        self.batch_size = max(1, batch_size)
        self.fetch_timeout = fetch_timeout
        self.metrics = metrics
        self.dry_run = dry_run
        self.logger = get_logger("climate.warmer")
        self.last_report: Optional[WarmReport] = None
        self._lock = asyncio.Lock()

    @property
    def remaining_indices(self) -> List[str]:
        return [code for code in self.indices if code not in self.priority_indices]

    async def warm(self, cache: ResponseCache) -> WarmReport:
        """Run both warm phases to completion and return the report."""
        async with self._lock:
            report = WarmReport(scenario=self.scenario, period=self.period)
            start = time.perf_counter()

            self.logger.info(
                "Cache warming started",
                scenario=self.scenario,
                period=self.period,
                indices=len(self.indices),
                batch_size=self.batch_size,
                dry_run=self.dry_run,
            )

            await self.warm_metadata(cache, report)
            await self.warm_geojson(cache, report)

            report.duration_seconds = time.perf_counter() - start
            self.last_report = report

            stats = cache.stats()
            self.logger.info(
                "Cache warming complete",
                warmed=report.warmed,
                failed=report.failed,
                duration_seconds=round(report.duration_seconds, 2),
                cache_size=stats.size,
                cache_max_size=stats.max_size,
            )
            return report

    async def warm_metadata(self, cache: ResponseCache, report: WarmReport) -> None:
        """Warm the index and municipality listings with their envelopes."""
        targets = (
            (INDICES_PATH, self.store.fetch_all_active_indices, INDICES_TTL),
            (MUNICIPALITIES_PATH, self.store.fetch_all_municipalities, MUNICIPALITIES_TTL),
        )

        for path, fetch, ttl in targets:
            key = build_cache_key("GET", path)
            try:
                rows = await self._timed_fetch("metadata", fetch)
            except asyncio.TimeoutError:
                self.logger.warning("Metadata warm timed out", path=path, timeout=self.fetch_timeout)
                self._record_failure(report, "metadata", key)
                continue
            except Exception as exc:
                self.logger.error("Metadata warm failed", path=path, error=str(exc))
                self._record("metadata", "error")
                raise CacheWarmError(
                    "Failed to warm metadata",
                    details={"path": path, "error": str(exc)},
                ) from exc

            if not rows:
                self.logger.warning("Metadata warm returned no rows", path=path)
                self._record_failure(report, "metadata", key)
                continue

            payload = {"success": True, "count": len(rows), "data": rows}
            self._install(cache, key, payload, ttl)
            self._record_success(report, "metadata")
            self.logger.info("Warmed metadata", path=path, count=len(rows))

    async def warm_geojson(self, cache: ResponseCache, report: WarmReport) -> None:
        """Warm GeoJSON for every index, priority group first, batch by batch."""
        groups = (("priority", self.priority_indices), ("remaining", self.remaining_indices))

        for group_name, codes in groups:
            for batch in _batched(codes, self.batch_size):
                results = await asyncio.gather(
                    *(self._warm_geojson_entry(cache, code, report) for code in batch)
                )
                self.logger.info(
                    "Warmed GeoJSON batch",
                    group=group_name,
                    indices=batch,
                    succeeded=sum(1 for ok in results if ok),
                )

    async def _warm_geojson_entry(self, cache: ResponseCache, index: str, report: WarmReport) -> bool:
        path = geojson_path(self.scenario, self.period, index)
        key = build_cache_key("GET", path)

        try:
            collection = await self._timed_fetch(
                "geojson",
                lambda: self.store.fetch_geojson(self.scenario, self.period, index),
            )
        except asyncio.TimeoutError:
            self.logger.warning("GeoJSON warm timed out", index=index, timeout=self.fetch_timeout)
            self._record_failure(report, "geojson", key)
            return False
        except Exception as exc:
            self.logger.error(
                "GeoJSON warm failed",
                scenario=self.scenario,
                period=self.period,
                index=index,
                error=str(exc),
            )
            self._record_failure(report, "geojson", key)
            return False

        if not collection:
            self.logger.warning("GeoJSON warm returned no data", index=index)
            self._record_failure(report, "geojson", key)
            return False

        self._install(cache, key, collection, GEOJSON_TTL)
        self._record_success(report, "geojson")
        return True

    async def _timed_fetch(self, phase: str, fetch: Callable[[], Awaitable[Any]]) -> Any:
        start = time.perf_counter()
        try:
            if self.fetch_timeout:
                return await asyncio.wait_for(fetch(), timeout=self.fetch_timeout)
            return await fetch()
        finally:
            self._observe_duration(phase, time.perf_counter() - start)

    def _install(self, cache: ResponseCache, key: str, payload: Any, ttl: int) -> None:
        if self.dry_run:
            self.logger.debug("Dry run; skipping cache insert", key=key)
            return
        cache.store(key, payload, ttl)

    def _record_success(self, report: WarmReport, phase: str) -> None:
        report.record_success()
        self._record(phase, "warmed")

    def _record_failure(self, report: WarmReport, phase: str, key: str) -> None:
        report.record_failure(key)
        self._record(phase, "failed")

    def _observe_duration(self, phase: str, seconds: float) -> None:
        if not self.metrics:
            return
        try:
            self.metrics.observe_histogram("cache_warm_duration_seconds", seconds, phase=phase)
        except Exception as exc:
            self.logger.debug("Failed to record warm duration", error=str(exc))

    def _record(self, phase: str, result: str) -> None:
        if not self.metrics:
            return
        try:
            self.metrics.increment_counter("cache_warm_total", phase=phase, result=result)
        except Exception as exc:
            self.logger.debug("Failed to record warm metrics", error=str(exc))
