"""Bounded tool-calling agent loop."""
