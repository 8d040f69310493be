"""
Core utilities — shared exceptions and cross-cutting concerns used by the
listener, analysis engine, ingestion layer and API server.
"""
