"""
Tax Sale Collector

Collects property tax sale listings from county sources, normalizes them
and persists them idempotently.
"""
