"""Record ingestion and upload orchestration.

This package streams records out of JSON array sources, tracks per-record
progress, and coordinates resumable upload runs.
"""
