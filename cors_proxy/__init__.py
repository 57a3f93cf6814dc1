"""CORS forwarding proxy service."""
