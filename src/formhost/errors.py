"""formhost error hierarchy."""


class HostError(Exception):
    """Invalid host configuration: duplicate or unknown source name."""
