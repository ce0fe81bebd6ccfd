"""
Catalog package for the UI Rules Service.

Provides injectable read-through caches (in-memory or Redis) with a stale
fallback for remote JSON catalogs, and the fixed default bottom tabs with
their localized labels.
"""
