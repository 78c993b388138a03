"""
Climate Risk API service package.

Serves South African municipal climate-risk data: municipality geometries,
climate index metadata and per-index GeoJSON projections across emission
scenarios and time periods.

Structure:
- app.main: FastAPI app, routes, and middleware wiring.
- app.adapters: PostgreSQL/PostGIS data access.
- app.caching: Response cache, HTTP cache middleware and startup warmer.
- app.domain: Index catalogue and static reference payloads.
"""
