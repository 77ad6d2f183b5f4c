"""Persistence services that own task rows."""
