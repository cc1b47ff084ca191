"""
Constants for identity and presence.

Import example:
    from authentication.constants import PRESENCE_CONFIG
"""

from typing import Final


class PRESENCE_CONFIG:
    """Configuration for the last-seen presence heuristic."""

    # A user counts as online while now - last_seen is below this
    ONLINE_THRESHOLD_SECONDS: Final[int] = 60

    # How often clients are expected to send a heartbeat
    HEARTBEAT_INTERVAL_SECONDS: Final[int] = 30


class PROFILE_CONFIG:
    """Limits for fields copied from identity provider claims."""

    MAX_EXTERNAL_ID_LENGTH: Final[int] = 255
    MAX_NAME_LENGTH: Final[int] = 150
    MAX_IMAGE_URL_LENGTH: Final[int] = 2048

    # Claim names read from the identity token when the request body omits them
    EMAIL_CLAIM: Final[str] = "email"
    NAME_CLAIM: Final[str] = "name"
    IMAGE_CLAIM: Final[str] = "picture"
