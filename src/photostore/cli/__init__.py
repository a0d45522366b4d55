"""Operator tasks (invoke)."""
