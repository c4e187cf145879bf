"""schemadesk: resilient asyncio client and CLI for the schema builder API."""

__version__ = "0.1.0"
