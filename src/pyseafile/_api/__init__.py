"""Seafile web API endpoint modules (internal)."""
