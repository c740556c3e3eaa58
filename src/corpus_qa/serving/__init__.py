"""
Serving — FastAPI application over the ingest and query boundaries.
"""
