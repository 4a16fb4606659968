"""Build a custom JSON Schema catalog from local schemas and external sources."""

__version__ = "0.0.3"