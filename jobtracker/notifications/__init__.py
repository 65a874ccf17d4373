"""Notification preference records."""
