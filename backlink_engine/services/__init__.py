"""Discovery and monitoring services."""
