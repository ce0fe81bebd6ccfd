"""
UI Rules Service package.

Turns authored UI rules plus a runtime context into the resolved,
screen-scoped UI configuration a mobile renderer consumes. It provides:

- app.main: preview API surface (render, match, defaults) and health.
- app.rules: rule/effect models, condition evaluation, rule matching,
  effect application and the orchestrating engine.
- app.catalog: read-through caches for remote catalogs and the fixed
  default tab table.
- app.adapters: default effects providers and the flex features client.

Guidelines:
- Rendering never raises on malformed rule data; it degrades and logs.
- Remote catalogs are read-only inputs; cache them, never block on them.
"""
