"""HTTP edge for the gateway."""
