"""Utility modules for the backlink engine."""
