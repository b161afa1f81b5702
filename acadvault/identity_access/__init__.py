"""Caller identity and roles as provided by the upstream gateway."""
