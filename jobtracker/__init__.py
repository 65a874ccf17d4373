"""jobtracker - recurring job expansion for the job tracker."""

__version__ = "0.1.0"
