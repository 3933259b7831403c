"""Core constants and data models."""
