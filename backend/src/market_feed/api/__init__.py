"""API package for the market feed service."""
