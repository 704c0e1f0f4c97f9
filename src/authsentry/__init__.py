"""AuthSentry: abuse prevention, audit and credential recovery for login flows."""

__version__ = "0.1.0"
