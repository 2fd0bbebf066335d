"""Ingestion layer.

Adapters that receive data from the HypeRate stream and apply it to the
tracker registry.
"""

__all__: list[str] = []
