#! /usr/bin/env python


class BadgeError(Exception):
    """Base class for everything that can go wrong while making badges"""


# Missing token, channel or bad settings. Raised before touching Slack
class ConfigurationError(BadgeError):
    pass


# Slack couldn't tell us who is in the channel
class ListingError(BadgeError):
    pass


# One member's profile couldn't be fetched. The resolver skips that member
class ProfileFetchError(BadgeError):
    pass


class RenderError(BadgeError):
    pass


# Output file couldn't be written
class SinkError(BadgeError):
    pass
