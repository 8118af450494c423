"""Exception hierarchy for the CPM service.

Author: Dr. Mladen Mešter — Nexellum d.o.o.
License: AGPL-3.0-or-later
"""


class CpmError(Exception):
    """Base class for all CPM service errors."""


class ProjectionError(CpmError, ValueError):
    """Geodetic input lies outside the grid projection's validity domain."""


class NotDecodable(CpmError):
    """Inbound packet does not parse as a Collective Perception Message."""


class SendRejected(CpmError):
    """Transport gateway did not accept the outbound message."""

    def __init__(self, message: str, confirm=None):
        super().__init__(message)
        self.confirm = confirm


class ConfigError(CpmError, ValueError):
    """Configuration file content is malformed."""
