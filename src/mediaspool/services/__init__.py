"""Higher-level services built on the storage and notification layers."""
