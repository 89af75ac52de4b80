"""
Page render service package.

The service answers page requests with server-rendered markup and memoizes
the output in two tiers:
- Volatile tier: a process-local mapping consulted first on every request.
- Durable tier: a shared document store (Redis or Firestore) that survives
  restarts and backfills the volatile tier on read.

Structure:
- app.main: FastAPI app, page route, and cache administration routes.
- app.caching: Key normalization, both tiers, the orchestrator, invalidation.
- app.rendering: HTTP client for the upstream SSR renderer.
"""
