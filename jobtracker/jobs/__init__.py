"""Job records and save-time operations."""
