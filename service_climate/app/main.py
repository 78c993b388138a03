"""
Climate Risk API service.
"""

from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import NotFoundError
from service_climate.app.adapters.climate_store import ClimateDataStore
from service_climate.app.caching.middleware import ResponseCacheMiddleware
from service_climate.app.caching.response_cache import ResponseCache
from service_climate.app.caching.warmer import (
    CacheWarmer,
    GEOJSON_ROUTE,
    INDICES_PATH,
    MUNICIPALITIES_PATH,
)
from service_climate.app.domain import reference
from service_climate.app.domain.climate_indices import validate_index_code


AVAILABLE_ENDPOINTS = [
    "GET /health",
    "GET /api/municipalities",
    "GET /api/climate-data",
    "GET /api/indices",
]


class ClimateService(BaseService):
    """Climate Risk API service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        store: Optional[ClimateDataStore] = None,
    ):
        self._store_override = store
        super().__init__("climate", 4002, config=config)

        self._setup_climate_routes()
        self._setup_municipality_routes()
        self._setup_indices_routes()
        self._setup_cache_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.climate_service = self

    def _init_components(self):
        self.store = self._store_override or ClimateDataStore(
            self.config.postgres_dsn,
            min_size=self.config.db_pool_min_size,
            max_size=self.config.db_pool_max_size,
            command_timeout=self.config.db_command_timeout,
        )
        self.cache = ResponseCache(
            max_size=self.config.cache_max_size,
            default_ttl=self.config.cache_default_ttl,
            tiered_ttl=self.config.cache_tiered_ttl,
            etag_enabled=self.config.cache_etag,
            metrics=self.metrics,
        )
        self.warmer = CacheWarmer(
            self.store,
            scenario=self.config.cache_warm_scenario,
            period=self.config.cache_warm_period,
            batch_size=self.config.cache_warm_batch_size,
            fetch_timeout=self.config.cache_warm_timeout,
            metrics=self.metrics,
        )

    def _setup_service_middleware(self):
        if self.config.cache_enabled:
            self.app.add_middleware(ResponseCacheMiddleware, cache=self.cache)

    async def _on_startup(self):
        try:
            await self.store.start()
            await self.store.check_connection()
        except Exception as e:
            self.logger.error("Failed to start server", error=str(e))
            raise

        if self.config.cache_enabled and self.config.cache_warm_on_startup:
            await self.warmer.warm(self.cache)

        self.logger.info(
            "Climate Risk API ready",
            environment=self.config.env,
            port=self.config.port,
            cache=self.cache.stats().to_dict(),
        )

    async def _on_shutdown(self):
        await self.store.stop()

    async def _check_dependencies(self) -> Dict[str, str]:
        return {"database": "ok" if self.store.pool is not None else "unavailable"}

    def _setup_climate_routes(self):
        """Set up root, climate projection and not-found handling."""

        @self.app.exception_handler(StarletteHTTPException)
        async def not_found_handler(request: Request, exc: StarletteHTTPException):
            if exc.status_code != 404:
                return await http_exception_handler(request, exc)
            return JSONResponse(
                status_code=404,
                content={
                    "error": "Not Found",
                    "message": f"Route {request.method} {request.url.path} not found",
                    "availableEndpoints": AVAILABLE_ENDPOINTS,
                },
            )

        @self.app.get("/")
        async def root():
            """API info."""
            return {
                "name": "Climate Risk Tool API",
                "version": "1.0.0",
                "description": "API for South African municipality climate risk data",
                "endpoints": {
                    "health": "/health",
                    "municipalities": MUNICIPALITIES_PATH,
                    "climateData": "/api/climate-data",
                    "geojson": GEOJSON_ROUTE.replace("{", ":").replace("}", ""),
                    "indices": INDICES_PATH,
                    "cache": "/api/cache/stats",
                },
            }

        @self.app.get("/api/climate-data/scenarios")
        async def list_scenarios():
            """Available emission scenarios."""
            scenarios = await self.store.fetch_scenarios()
            return {"success": True, "scenarios": scenarios}

        @self.app.get("/api/climate-data/periods")
        async def list_periods():
            """Available time periods."""
            periods = await self.store.fetch_periods()
            return {"success": True, "periods": periods}

        @self.app.get(GEOJSON_ROUTE)
        async def get_geojson(scenario: str, period: str, index: str):
            """FeatureCollection of one index across municipalities for mapping."""
            validate_index_code(index)
            collection = await self.store.fetch_geojson(scenario, period, index)
            if not collection:
                raise NotFoundError(
                    "No data found for specified parameters",
                    details={"scenario": scenario, "period": period, "index": index},
                )
            return collection

        @self.app.get("/api/climate-data/{municipality_id}")
        async def get_municipality_climate_data(municipality_id: int):
            """All scenarios and periods for a municipality."""
            rows = await self.store.fetch_climate_data(municipality_id)
            if not rows:
                raise NotFoundError("No climate data found for this municipality")
            return {
                "success": True,
                "municipality": {
                    "id": municipality_id,
                    "name": rows[0]["municipality_name"],
                    "province": rows[0]["province"],
                },
                "count": len(rows),
                "data": rows,
            }

        @self.app.get("/api/climate-data/{municipality_id}/{scenario}/{period}")
        async def get_municipality_climate_period(municipality_id: int, scenario: str, period: str):
            """One scenario and period for a municipality."""
            row = await self.store.fetch_climate_data_for_period(municipality_id, scenario, period)
            if row is None:
                raise NotFoundError("Climate data not found for specified parameters")
            return {"success": True, "data": row}

    def _setup_municipality_routes(self):
        """Set up municipality routes."""

        @self.app.get(MUNICIPALITIES_PATH)
        async def list_municipalities():
            """All municipalities with basic info."""
            rows = await self.store.fetch_all_municipalities()
            return {"success": True, "count": len(rows), "data": rows}

        @self.app.get(f"{MUNICIPALITIES_PATH}/stats/summary")
        async def municipality_summary():
            """Summary statistics."""
            summary = await self.store.fetch_municipality_summary()
            return {"success": True, **summary}

        @self.app.get(f"{MUNICIPALITIES_PATH}/province/{{province}}")
        async def municipalities_by_province(province: str):
            rows = await self.store.fetch_municipalities_by_province(province)
            return {
                "success": True,
                "province": province.upper(),
                "count": len(rows),
                "data": rows,
            }

        @self.app.get(f"{MUNICIPALITIES_PATH}/district/{{district_code}}")
        async def municipalities_by_district(district_code: str):
            rows = await self.store.fetch_municipalities_by_district(district_code)
            if not rows:
                raise NotFoundError("District not found or has no municipalities")
            return {
                "success": True,
                "district_code": district_code.upper(),
                "district_name": rows[0]["district_name"],
                "count": len(rows),
                "data": rows,
            }

        @self.app.get(f"{MUNICIPALITIES_PATH}/{{municipality_id}}")
        async def get_municipality(municipality_id: int):
            """Single municipality with its geometry."""
            row = await self.store.fetch_municipality(municipality_id)
            if row is None:
                raise NotFoundError("Municipality not found")
            return {"success": True, "data": row}

    def _setup_indices_routes(self):
        """Set up climate index metadata routes."""

        @self.app.get(INDICES_PATH)
        async def list_indices():
            """All active climate indices with metadata."""
            rows = await self.store.fetch_all_active_indices()
            return {"success": True, "count": len(rows), "data": rows}

        @self.app.get(f"{INDICES_PATH}/sectors")
        async def list_sectors():
            """Sector classification reference."""
            return {
                "success": True,
                "sectors": reference.SECTORS,
                "usage": reference.SECTOR_USAGE,
            }

        @self.app.get(f"{INDICES_PATH}/color-schemes")
        async def list_color_schemes():
            """Colour scheme reference and explanation."""
            return {
                "success": True,
                "explanation": reference.COLOR_SCHEME_EXPLANATION,
                "palette_types": reference.PALETTE_TYPES,
                "color_schemes": reference.COLOR_SCHEMES,
                "implementation_guide": reference.IMPLEMENTATION_GUIDE,
            }

        @self.app.get(f"{INDICES_PATH}/stats/categories")
        async def index_category_stats():
            categories = await self.store.fetch_index_category_stats()
            return {"success": True, "categories": categories}

        @self.app.get(f"{INDICES_PATH}/stats/summary")
        async def index_summary():
            summary = await self.store.fetch_index_summary()
            summary["baseline_period"] = reference.BASELINE_PERIOD
            return {"success": True, "summary": summary}

        @self.app.get(f"{INDICES_PATH}/stats/by-sector")
        async def indices_by_sector():
            rows = await self.store.fetch_indices_by_sector()
            return {
                "success": True,
                "by_sector": rows,
                "sector_reference": reference.SECTOR_NAMES,
            }

        @self.app.get(f"{INDICES_PATH}/category/{{category}}")
        async def indices_by_category(category: str):
            rows = await self.store.fetch_indices_by_category(category)
            if not rows:
                raise NotFoundError("Category not found or has no active indices")
            return {
                "success": True,
                "category": category.lower(),
                "count": len(rows),
                "data": rows,
            }

        @self.app.get(f"{INDICES_PATH}/{{code}}")
        async def get_index(code: str):
            row = await self.store.fetch_index(code)
            if row is None:
                raise NotFoundError("Climate index not found")
            return {"success": True, "data": row}

    def _setup_cache_routes(self):
        """Set up cache administration routes."""

        @self.app.get("/api/cache/stats")
        async def cache_stats():
            """Cache statistics, TTL tiers and the last warm report."""
            last_report = self.warmer.last_report
            return {
                "success": True,
                "cache": self.cache.stats().to_dict(),
                "tiers": self.cache.tiers(),
                "last_warm": last_report.to_dict() if last_report else None,
            }

        @self.app.post("/api/cache/clear")
        async def clear_cache():
            """Drop every cached response."""
            self.cache.clear()
            return {"success": True, "message": "Cache cleared"}

        @self.app.post("/api/cache/warm")
        async def warm_cache():
            """Re-run the cache warmer."""
            report = await self.warmer.warm(self.cache)
            payload: Dict[str, Any] = {
                "success": True,
                "report": report.to_dict(),
                "cache": self.cache.stats().to_dict(),
            }
            return payload


def create_app():
    """Create FastAPI application."""
    service = ClimateService()
    return service.app


if __name__ == "__main__":
    service = ClimateService()
    service.run()
