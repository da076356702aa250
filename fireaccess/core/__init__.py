"""Core: config and the lifecycle manager that wires handles to services."""
