"""
API Gateway Service package for the dataset gateway.

The gateway fronts tenant API calls, enforcing:
- Authentication: tenant / endpoint / API key lookup against the store
- Dataset caching: read-through cache over a local scratch directory
- Query filtering: query-string predicates over dataset records
- Usage logging: fire-and-forget uploads to the logs bucket

Structure:
- app.main: FastAPI app, routes, and wiring.
- app.adapters: HTTP clients for the object store and credential lookup.
- app.caching: Dataset cache, scratch store and metadata index.
- app.query: Predicate parsing and evaluation.
- app.domain: Request handling and usage logging.
"""
