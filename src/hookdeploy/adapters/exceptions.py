"""Custom exceptions for the external collaborator adapters."""


class AdapterError(Exception):
    """Base exception for adapter errors."""


class SupervisorError(AdapterError):
    """Process supervisor command failed."""


class VCSError(AdapterError):
    """Git command failed."""


class TestEngineError(AdapterError):
    """Test run could not be set up."""

    __test__ = False
