"""Document verification providers."""
