"""Comparison engine."""
