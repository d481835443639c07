#! /usr/bin/env python

from slack_sdk import WebClient
from slack_sdk.errors import SlackClientError
import logging

from errors import ListingError, ProfileFetchError

logger = logging.getLogger("slack_helper")

# Network failures and timeouts surface as OSError subclasses
SLACK_ERRORS = (SlackClientError, OSError)


def next_cursor(response):
    return (response.get("response_metadata") or {}).get("next_cursor")


class SlackHelper:
    def __init__(self, token, timeout=30):
        # No retry handlers: a failed call is reported once, never resent
        self.sc = WebClient(token=token, timeout=timeout, retry_handlers=[])

    def get_channel_id(self, channel_filter):
        try:
            response = self.sc.conversations_list(
                types="public_channel,private_channel"
            )
            channels = list(response["channels"])

            # Get next page
            while next_cursor(response):
                cursor = next_cursor(response)
                logger.info("Getting next page of channels with cursor: %s", cursor)
                response = self.sc.conversations_list(
                    cursor=cursor, types="public_channel,private_channel"
                )
                channels.extend(response["channels"])
        except SLACK_ERRORS as e:
            raise ListingError("Error listing channels: {0}".format(e)) from e

        for channel in channels:
            if channel["name"] == channel_filter.replace("#", ""):
                return channel["id"]

        return None

    def get_channel_members(self, channel_id):
        """Return the ids of every member of a channel, in Slack's order.

        All pages are fetched before returning; a failure on any page raises
        ListingError rather than handing back part of the roster.
        """
        try:
            response = self.sc.conversations_members(channel=channel_id)
            member_ids = list(response["members"])

            while next_cursor(response):
                cursor = next_cursor(response)
                logger.info("Getting next page of members with cursor: %s", cursor)
                response = self.sc.conversations_members(
                    channel=channel_id, cursor=cursor
                )
                member_ids.extend(response["members"])
        except SLACK_ERRORS as e:
            raise ListingError(
                "Error fetching users from channel {0}: {1}".format(channel_id, e)
            ) from e

        return member_ids

    def get_user_profile(self, user_id):
        try:
            response = self.sc.users_info(user=user_id)
        except SLACK_ERRORS as e:
            raise ProfileFetchError(
                "Error fetching user info for {0}: {1}".format(user_id, e)
            ) from e

        user = response.get("user")
        if not user:
            raise ProfileFetchError("No user returned for {0}".format(user_id))
        return user
