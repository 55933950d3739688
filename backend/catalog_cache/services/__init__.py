"""Cache layer services."""
