"""Quote and order lifecycle engine."""
