"""Per-kind action sets."""
