"""Fire-and-forget webhook delivery of domain events."""
