"""Document request intake: routing, correlation, lifecycle, validation and reminders."""

__version__ = "0.1.0"
