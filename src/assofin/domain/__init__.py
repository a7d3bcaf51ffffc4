"""Domain layer: repository contracts consumed by the services."""
