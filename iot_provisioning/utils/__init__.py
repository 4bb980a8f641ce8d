"""Shared helpers: callback adaptation, user agent, connection strings, SAS."""
