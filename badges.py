#! /usr/bin/env python

import os
import stat
import logging
import tempfile
from collections import namedtuple

from jinja2 import Environment, StrictUndefined, TemplateError

from errors import ConfigurationError, RenderError, SinkError

logger = logging.getLogger("badges")

CONTENT_TYPE = "text/html; charset=utf-8"

LayoutSpec = namedtuple(
    "LayoutSpec",
    [
        "name",
        "show_display_name",
        "show_title",
        "columns",
        "rows_per_page",
        "badge_width",
        "badge_height",
        "page_size",
        "page_margin",
        "image_size",
    ],
)

Document = namedtuple("Document", ["content", "content_type"])

LAYOUTS = {
    # Simple two-column badge, no handle
    "badge": LayoutSpec(
        name="badge",
        show_display_name=False,
        show_title=True,
        columns=2,
        rows_per_page=4,
        badge_width="90mm",
        badge_height="60mm",
        page_size="letter",
        page_margin="10mm",
        image_size="25mm",
    ),
    # Nafuda: ten business-card sized tags per A4 sheet
    "nafuda": LayoutSpec(
        name="nafuda",
        show_display_name=True,
        show_title=True,
        columns=2,
        rows_per_page=5,
        badge_width="91mm",
        badge_height="55mm",
        page_size="A4",
        page_margin="10mm",
        image_size="20mm",
    ),
    "a4": LayoutSpec(
        name="a4",
        show_display_name=True,
        show_title=True,
        columns=2,
        rows_per_page=4,
        badge_width="95mm",
        badge_height="65mm",
        page_size="A4",
        page_margin="8mm",
        image_size="30mm",
    ),
}

TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>Name badges</title>
<style>
    @page {
        size: {{ layout.page_size }};
        margin: {{ layout.page_margin }};
    }
    body {
        margin: 0;
        font-family: sans-serif;
    }
    .page {
        display: grid;
        grid-template-columns: repeat({{ layout.columns }}, {{ layout.badge_width }});
        grid-auto-rows: {{ layout.badge_height }};
    }
    .page.break {
        page-break-after: always;
        break-after: page;
    }
    .badge {
        border: 1px solid black;
        padding: 3mm;
        box-sizing: border-box;
        overflow: hidden;
    }
    .badge .badge-image {
        width: {{ layout.image_size }};
        height: {{ layout.image_size }};
        object-fit: cover;
        display: block;
        margin-bottom: 2mm;
    }
    .badge .badge-name {
        font-size: 18px;
        font-weight: bold;
    }
    .badge .badge-display-name {
        font-size: 14px;
        color: #555;
    }
    .badge .badge-title {
        font-size: 14px;
    }
</style>
</head>
<body>
{% for page in pages %}
<div class="page{% if not loop.last %} break{% endif %}">
{% for member in page %}
<div class="badge">
    <img class="badge-image" src="{{ member.image_url }}" alt="{{ member.full_name }}">
    <div class="badge-name">{{ member.full_name }}</div>
{% if layout.show_display_name %}
    <div class="badge-display-name">{{ member.display_name }}</div>
{% endif %}
{% if layout.show_title %}
    <div class="badge-title">{{ member.title }}</div>
{% endif %}
</div>
{% endfor %}
</div>
{% endfor %}
</body>
</html>
"""

env = Environment(
    autoescape=True,
    undefined=StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
)


def get_layout(name):
    if name not in LAYOUTS:
        raise ConfigurationError(
            "Unknown layout {0}, expected one of: {1}".format(
                name, ", ".join(sorted(LAYOUTS))
            )
        )
    return LAYOUTS[name]


def check_layout(layout):
    for field in ("columns", "rows_per_page"):
        value = getattr(layout, field)
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            raise RenderError(
                "Layout {0}: {1} must be a positive integer, got {2!r}".format(
                    layout.name, field, value
                )
            )
    for field in ("badge_width", "badge_height", "page_size", "page_margin", "image_size"):
        value = getattr(layout, field)
        if not isinstance(value, str) or not value.strip():
            raise RenderError(
                "Layout {0}: {1} must be set".format(layout.name, field)
            )


def paginate(records, per_page):
    return [records[i : i + per_page] for i in range(0, len(records), per_page)]


def render(records, layout, template=TEMPLATE):
    """Render records as a printable grid of badges.

    Badges follow the order of records, filling each page left to right,
    top to bottom. Output depends only on the arguments.
    """
    check_layout(layout)
    pages = paginate(list(records), layout.columns * layout.rows_per_page)

    try:
        html = env.from_string(template).render(layout=layout, pages=pages)
    except TemplateError as e:
        raise RenderError("Error rendering badges: {0}".format(e)) from e

    return Document(html.encode("utf-8"), CONTENT_TYPE)


def output_mode(path):
    """Keep an existing file's permissions, otherwise 0666 less the umask"""
    try:
        return stat.S_IMODE(os.stat(path).st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def write_document(document, path):
    """Write document to path; a failed or interrupted write leaves no partial file."""
    directory = os.path.dirname(os.path.abspath(path))
    tmp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            "wb", dir=directory, prefix=".badges-", suffix=".tmp", delete=False
        ) as f:
            tmp_path = f.name
            f.write(document.content)
        os.chmod(tmp_path, output_mode(path))
        os.replace(tmp_path, path)
        tmp_path = None
    except OSError as e:
        raise SinkError("Error writing {0}: {1}".format(path, e)) from e
    finally:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.remove(tmp_path)

    logger.info("Wrote %d bytes to %s", len(document.content), path)
    return path
