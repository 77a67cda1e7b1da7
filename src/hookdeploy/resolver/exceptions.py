"""Custom exceptions for the Target Resolver."""


class ResolutionError(Exception):
    """Resolved target name has no application configuration."""
