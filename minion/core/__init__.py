"""Core configuration, errors and authentication."""
