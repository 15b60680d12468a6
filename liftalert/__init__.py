"""Lift alert routing service."""
