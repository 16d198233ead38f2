"""Providers, transport and application services."""
