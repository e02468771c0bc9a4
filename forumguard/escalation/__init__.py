"""Escalation — automated content actions driven by unresolved report volume."""
