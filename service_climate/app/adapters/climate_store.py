"""
PostgreSQL/PostGIS data access for the Climate Risk API.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional

import asyncpg
from fastapi.encoders import jsonable_encoder

from shared.logging import get_logger
from shared.errors import DataStoreError
from ..domain.climate_indices import validate_index_code


INDEX_COLUMNS = """
    id, index_code, index_name, category, description,
    technical_definition, plain_language_description,
    unit, interpretation, risk_direction, sector,
    baseline_period, display_order, color_scheme,
    color_palette_type, anomaly_direction, is_active
"""

MUNICIPALITY_COLUMNS = """
    id, objectid, municipality_name, municipality_code,
    province, district_code, district_name, category,
    centroid_lat, centroid_lon, area_km2
"""

# {index} is substituted only with a code that passed validate_index_code.
GEOJSON_QUERY = """
    SELECT
      json_build_object(
        'type', 'FeatureCollection',
        'features', json_agg(
          json_build_object(
            'type', 'Feature',
            'id', m.id,
            'geometry', ST_AsGeoJSON(m.geom)::json,
            'properties', json_build_object(
              'id', m.id,
              'municipality_name', m.municipality_name,
              'municipality_code', m.municipality_code,
              'province', m.province,
              'district_code', m.district_code,
              'district_name', m.district_name,
              'centroid_lat', m.centroid_lat,
              'centroid_lon', m.centroid_lon,
              'area_km2', m.area_km2,
              'scenario', cd.scenario,
              'period', cd.period,
              'period_start', cd.period_start,
              'period_end', cd.period_end,
              'index_code', '{index}',
              'value', cd.{index}
            )
          )
        )
      ) AS geojson
    FROM public.municipalities m
    JOIN public.climate_data cd ON cd.municipality_id = m.id
    WHERE cd.scenario = $1
      AND cd.period = $2
      AND m.geom IS NOT NULL
      AND cd.{index} IS NOT NULL
"""


class ClimateDataStore:
    """Async access to municipalities, climate projections and index metadata."""

    def __init__(
        self,
        dsn: str,
        *,
        min_size: int = 2,
        max_size: int = 20,
        command_timeout: float = 30.0,
    ):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self.logger = get_logger("climate.store")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Open the connection pool."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=self.command_timeout,
            )
            self.logger.info("Climate data store started", max_size=self.max_size)
        except (asyncpg.PostgresError, OSError) as e:
            self.logger.error("Failed to start climate data store", error=str(e))
            raise DataStoreError("Could not connect to the spatial store", {"error": str(e)})

    async def stop(self):
        """Close the connection pool."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("Climate data store stopped")

    async def check_connection(self) -> Dict[str, Any]:
        """Confirm the store is reachable and PostGIS is installed."""
        row = await self._fetchrow(
            "SELECT NOW() AS now, version() AS version, PostGIS_Version() AS postgis"
        )
        info = {
            "time": row["now"].isoformat(),
            "postgres": row["version"].split(",")[0],
            "postgis": row["postgis"],
        }
        self.logger.info("Database connection successful", **info)
        return info

    # Index metadata

    async def fetch_all_active_indices(self) -> List[Dict[str, Any]]:
        return await self._fetch(f"""
            SELECT {INDEX_COLUMNS}
            FROM public.climate_indices
            WHERE is_active = true
            ORDER BY display_order, category, index_code
        """)

    async def fetch_index(self, code: str) -> Optional[Dict[str, Any]]:
        rows = await self._fetch(f"""
            SELECT {INDEX_COLUMNS}
            FROM public.climate_indices
            WHERE index_code = $1
        """, code.lower())
        return rows[0] if rows else None

    async def fetch_indices_by_category(self, category: str) -> List[Dict[str, Any]]:
        return await self._fetch(f"""
            SELECT {INDEX_COLUMNS}
            FROM public.climate_indices
            WHERE category = $1 AND is_active = true
            ORDER BY display_order, index_code
        """, category.lower())

    async def fetch_index_category_stats(self) -> List[Dict[str, Any]]:
        rows = await self._fetch("""
            SELECT
              category,
              COUNT(*) AS index_count,
              json_agg(
                json_build_object('code', index_code, 'name', index_name, 'unit', unit)
                ORDER BY display_order, index_code
              ) AS indices
            FROM public.climate_indices
            WHERE is_active = true
            GROUP BY category
            ORDER BY category
        """)
        return self._decode_json_column(rows, "indices")

    async def fetch_index_summary(self) -> Dict[str, Any]:
        total = await self._fetchrow("""
            SELECT COUNT(*) AS total
            FROM public.climate_indices
            WHERE is_active = true
        """)
        by_category = await self._fetch("""
            SELECT category, COUNT(*) AS count
            FROM public.climate_indices
            WHERE is_active = true
            GROUP BY category
            ORDER BY category
        """)
        by_risk_direction = await self._fetch("""
            SELECT risk_direction, COUNT(*) AS count
            FROM public.climate_indices
            WHERE is_active = true
            GROUP BY risk_direction
            ORDER BY risk_direction
        """)
        return {
            "total_indices": int(total["total"]),
            "by_category": by_category,
            "by_risk_direction": by_risk_direction,
        }

    async def fetch_indices_by_sector(self) -> List[Dict[str, Any]]:
        rows = await self._fetch("""
            SELECT
              sector,
              COUNT(*) AS index_count,
              json_agg(
                json_build_object(
                  'code', index_code,
                  'name', index_name,
                  'category', category,
                  'plain_language', plain_language_description
                ) ORDER BY category, index_code
              ) AS indices
            FROM public.climate_indices
            WHERE is_active = true AND sector IS NOT NULL
            GROUP BY sector
            ORDER BY index_count DESC
        """)
        return self._decode_json_column(rows, "indices")

    # Municipalities

    async def fetch_all_municipalities(self) -> List[Dict[str, Any]]:
        return await self._fetch(f"""
            SELECT {MUNICIPALITY_COLUMNS}
            FROM public.municipalities
            ORDER BY province, municipality_name
        """)

    async def fetch_municipality(self, municipality_id: int) -> Optional[Dict[str, Any]]:
        rows = await self._fetch("""
            SELECT
              id, objectid, municipality_name, municipality_code,
              province, district_code, district_name, category,
              cat2, cat_b, centroid_lat, centroid_lon, area_km2,
              ST_AsGeoJSON(geom) AS geometry
            FROM public.municipalities
            WHERE id = $1
        """, municipality_id)
        if not rows:
            return None
        return self._decode_json_column(rows, "geometry")[0]

    async def fetch_municipalities_by_province(self, province: str) -> List[Dict[str, Any]]:
        return await self._fetch("""
            SELECT
              id, objectid, municipality_name, municipality_code,
              district_code, district_name, centroid_lat, centroid_lon, area_km2
            FROM public.municipalities
            WHERE province = $1
            ORDER BY municipality_name
        """, province.upper())

    async def fetch_municipalities_by_district(self, district_code: str) -> List[Dict[str, Any]]:
        return await self._fetch("""
            SELECT
              id, objectid, municipality_name, municipality_code,
              province, district_name, centroid_lat, centroid_lon, area_km2
            FROM public.municipalities
            WHERE district_code = $1
            ORDER BY municipality_name
        """, district_code.upper())

    async def fetch_municipality_summary(self) -> Dict[str, Any]:
        summary = await self._fetchrow("""
            SELECT
              COUNT(*) AS total_municipalities,
              COUNT(DISTINCT province) AS total_provinces,
              COUNT(DISTINCT district_code) AS total_districts,
              ROUND(AVG(area_km2)::numeric, 2) AS avg_area_km2,
              ROUND(MIN(area_km2)::numeric, 2) AS min_area_km2,
              ROUND(MAX(area_km2)::numeric, 2) AS max_area_km2
            FROM public.municipalities
        """)
        by_province = await self._fetch("""
            SELECT province, COUNT(*) AS count
            FROM public.municipalities
            GROUP BY province
            ORDER BY count DESC
        """)
        top_districts = await self._fetch("""
            SELECT district_code, district_name, province, COUNT(*) AS municipality_count
            FROM public.municipalities
            WHERE district_code IS NOT NULL
            GROUP BY district_code, district_name, province
            ORDER BY municipality_count DESC
            LIMIT 10
        """)
        return {
            "summary": jsonable_encoder(dict(summary)),
            "by_province": by_province,
            "top_districts": top_districts,
        }

    # Climate projections

    async def fetch_climate_data(self, municipality_id: int) -> List[Dict[str, Any]]:
        return await self._fetch("""
            SELECT cd.*, m.municipality_name, m.province
            FROM public.climate_data cd
            JOIN public.municipalities m ON m.id = cd.municipality_id
            WHERE cd.municipality_id = $1
            ORDER BY cd.scenario, cd.period_start
        """, municipality_id)

    async def fetch_climate_data_for_period(
        self,
        municipality_id: int,
        scenario: str,
        period: str,
    ) -> Optional[Dict[str, Any]]:
        rows = await self._fetch("""
            SELECT cd.*, m.municipality_name, m.province, m.district_code, m.district_name
            FROM public.climate_data cd
            JOIN public.municipalities m ON m.id = cd.municipality_id
            WHERE cd.municipality_id = $1
              AND cd.scenario = $2
              AND cd.period = $3
        """, municipality_id, scenario, period)
        return rows[0] if rows else None

    async def fetch_scenarios(self) -> List[str]:
        rows = await self._fetch("""
            SELECT DISTINCT scenario
            FROM public.climate_data
            ORDER BY scenario
        """)
        return [row["scenario"] for row in rows]

    async def fetch_periods(self) -> List[Dict[str, Any]]:
        return await self._fetch("""
            SELECT DISTINCT period, period_start, period_end
            FROM public.climate_data
            ORDER BY period_start
        """)

    async def fetch_geojson(self, scenario: str, period: str, index_code: str) -> Optional[Dict[str, Any]]:
        """Assemble one index's FeatureCollection across municipalities, or None when empty."""
        index = validate_index_code(index_code)
        row = await self._fetchrow(GEOJSON_QUERY.format(index=index), scenario, period)
        if row is None or row["geojson"] is None:
            return None

        geojson = row["geojson"]
        if isinstance(geojson, str):
            geojson = json.loads(geojson)
        if not geojson.get("features"):
            return None
        return geojson

    # Query helpers

    async def _fetch(self, query: str, *args) -> List[Dict[str, Any]]:
        """Run a query and return JSON-safe row dicts."""
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                records = await conn.fetch(query, *args)
        except asyncio.TimeoutError:
            self.logger.warning("Query timed out", query=query.strip()[:200])
            raise
        except (asyncpg.PostgresError, OSError) as e:
            self.logger.error("Query error", error=str(e), query=query.strip()[:200])
            raise DataStoreError("Query failed", {"error": str(e)})
        return [jsonable_encoder(dict(record)) for record in records]

    async def _fetchrow(self, query: str, *args) -> Optional[asyncpg.Record]:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.fetchrow(query, *args)
        except asyncio.TimeoutError:
            self.logger.warning("Query timed out", query=query.strip()[:200])
            raise
        except (asyncpg.PostgresError, OSError) as e:
            self.logger.error("Query error", error=str(e), query=query.strip()[:200])
            raise DataStoreError("Query failed", {"error": str(e)})

    def _require_pool(self) -> asyncpg.Pool:
        if self.pool is None:
            raise DataStoreError("Climate data store is not started")
        return self.pool

    @staticmethod
    def _decode_json_column(rows: List[Dict[str, Any]], column: str) -> List[Dict[str, Any]]:
        """asyncpg returns json columns as text; decode them in place."""
        for row in rows:
            value = row.get(column)
            if isinstance(value, str):
                row[column] = json.loads(value)
        return rows
