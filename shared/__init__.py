"""Helpers shared by all tools."""
