"""Interaction-abuse detection for a social backend."""
