"""HTTP API for the world generator."""
