"""State/store layer.

This package is the single source of truth for per-tracker heart-rate
state. Stream ingestion writes into it; the display sink and the
persistence scheduler only read immutable snapshots.
"""
