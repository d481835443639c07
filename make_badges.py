#! /usr/bin/env python

import sys
import logging

from badges import get_layout, render, write_document
from errors import BadgeError, ConfigurationError, ListingError
from roster import resolve
from slack_helper import SlackHelper
from util import get_conf_or_env, read_config_file

FORMAT = "%(asctime)-15s %(message)s"
logger = logging.getLogger("make-badges")

USAGE = "Usage: make_badges.py CHANNEL [LAYOUT]"


def load_settings(args, config_path="config.env"):
    """Resolve token, channel, layout, output and timeout before any Slack call"""
    config_data = read_config_file(config_path)

    settings = {
        "channel": args[0].strip(),
        "token": get_conf_or_env("SLACK_TOKEN", config_data),
        "layout": args[1] if len(args) > 1 else get_conf_or_env(
            "BADGE_LAYOUT", config_data, "badge"
        ),
        "output": get_conf_or_env("BADGE_OUTPUT", config_data, "name_badges.html"),
        "timeout": get_conf_or_env("SLACK_TIMEOUT", config_data, "30"),
    }

    if not settings["token"]:
        raise ConfigurationError("SLACK_TOKEN environment variable is not set")
    if not settings["channel"] or settings["channel"] == "#":
        raise ConfigurationError("Channel ID is required")
    if not settings["output"]:
        raise ConfigurationError("BADGE_OUTPUT must not be empty")

    try:
        settings["timeout"] = float(settings["timeout"])
    except ValueError as e:
        raise ConfigurationError(
            "SLACK_TIMEOUT must be a number, got {0}".format(settings["timeout"])
        ) from e
    if settings["timeout"] <= 0:
        raise ConfigurationError("SLACK_TIMEOUT must be positive")

    settings["layout"] = get_layout(settings["layout"])
    return settings


def make_badges(settings):
    sh = SlackHelper(settings["token"], timeout=settings["timeout"])

    channel_id = settings["channel"]
    if channel_id.startswith("#"):
        channel_id = sh.get_channel_id(channel_id)
        if channel_id is None:
            raise ListingError("No channel named " + settings["channel"])

    records, report = resolve(channel_id, sh)
    for skipped in report.skipped:
        logger.warning("No badge for %s: %s", skipped.member_id, skipped.reason)

    document = render(records, settings["layout"])
    write_document(document, settings["output"])
    return report


def main(args, config_path="config.env"):
    if len(args) not in (1, 2):
        print(USAGE)
        return 2

    try:
        settings = load_settings(args, config_path)
        report = make_badges(settings)
    except BadgeError as e:
        logger.error(e)
        return 1

    print(
        "Made {0} of {1} badges. Check {2}".format(
            report.resolved, len(report.member_ids), settings["output"]
        )
    )
    return 0


def cli():
    logging.basicConfig(format=FORMAT, level=logging.INFO)
    sys.exit(main(sys.argv[1:]))


if __name__ == "__main__":
    cli()
