"""Agent workflows."""
