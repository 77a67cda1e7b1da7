"""hookdeploy - webhook-triggered test, pull and reload for managed applications."""

__version__ = "0.1.0"
