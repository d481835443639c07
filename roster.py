#! /usr/bin/env python

import logging
from collections import namedtuple

from errors import ConfigurationError, ProfileFetchError

logger = logging.getLogger("roster")

MemberRecord = namedtuple(
    "MemberRecord", ["full_name", "display_name", "title", "image_url"]
)

SkippedMember = namedtuple("SkippedMember", ["member_id", "reason"])


class RunReport:
    def __init__(self, channel_id):
        self.channel_id = channel_id
        self.member_ids = []
        self.skipped = []
        self.resolved = 0

    def skip(self, member_id, reason):
        self.skipped.append(SkippedMember(member_id, reason))

    @property
    def skipped_ids(self):
        return [s.member_id for s in self.skipped]


def member_record_from_user(user):
    """Map a Slack users.info user object to a MemberRecord.

    Missing fields become empty strings. The avatar is always the 192px
    image, whatever other sizes the profile offers.
    """
    profile = user.get("profile") or {}
    full_name = user.get("real_name") or profile.get("real_name") or ""
    return MemberRecord(
        full_name=full_name,
        display_name=profile.get("display_name") or "",
        title=profile.get("title") or "",
        image_url=profile.get("image_192") or "",
    )


def resolve(channel_id, source):
    """Fetch every member of channel_id from source and return (records, report).

    Listing errors propagate. A member whose profile can't be fetched is
    logged, recorded in the report and left out; the rest keep their order.
    """
    if not channel_id:
        raise ConfigurationError("Channel ID is required")

    report = RunReport(channel_id)
    report.member_ids = source.get_channel_members(channel_id)
    logger.info("Found %d members in %s", len(report.member_ids), channel_id)

    records = []
    for member_id in report.member_ids:
        try:
            user = source.get_user_profile(member_id)
        except ProfileFetchError as e:
            logger.warning("Skipping %s: %s", member_id, e)
            report.skip(member_id, str(e))
            continue

        records.append(member_record_from_user(user))

    report.resolved = len(records)
    return records, report
