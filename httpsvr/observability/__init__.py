"""Observability helpers for httpsvr.

Request ids + structlog contextvars for correlated access logs, plus an
in-memory per-route metrics store that `/__metric` reports from.
"""
