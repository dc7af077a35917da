"""Competency cache and adaptive question allocation engine."""
