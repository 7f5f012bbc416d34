"""Domain layer: entities, enums, errors and protocols (ports)."""
