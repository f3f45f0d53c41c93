"""Package marker for the HTTP API layer."""
