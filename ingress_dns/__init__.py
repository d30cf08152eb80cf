"""Keeps Cloudflare address records in sync with the Traefik nodes of a Nomad cluster."""

__version__ = "0.1.0"
