"""Remote media download client."""
