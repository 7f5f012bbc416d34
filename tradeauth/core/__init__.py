"""Core primitives: Result types, errors, enums, configuration, container."""
