"""Recurrence rules, template expansion and the periodic driver."""
