"""
Ingest package: data sources feeding the scoring engine.
"""
