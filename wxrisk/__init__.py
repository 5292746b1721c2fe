"""Weather fusion and flight-risk assessment engine."""

__version__ = "0.1.0"
