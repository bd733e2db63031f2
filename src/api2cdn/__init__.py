"""API-to-CDN sync: publish API data as static ES modules on a KV-backed CDN."""

__version__ = "1.0.0"
