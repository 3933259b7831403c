"""Reallocation planning engine: targets, matcher, simulation and monitoring."""
