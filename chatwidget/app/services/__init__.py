"""Abuse protection and tenant services."""
