#! /usr/bin/env python

import os
import logging

logger = logging.getLogger("util")


# Read from either a config map or environment variable
def get_conf_or_env(key, config_map, default_val=None):
    return os.environ.get(key, config_map.get(key, default_val))


# Read config file of KEY=value lines, skipping blanks and comments
def read_config_file(filepath):
    out = {}
    if os.path.exists(filepath):
        logger.info("Found config file at " + filepath)
        with open(filepath, "r") as f:
            data = f.read()
            for line in data.split("\n"):
                line = line.strip()
                if line.startswith("#"):
                    continue
                if "=" in line:
                    key, val = line.split("=", 1)
                    out[key.strip()] = val.strip()
    else:
        logger.warning("Unable to find config file at " + filepath)
    return out
