import os
import stat
from html.parser import HTMLParser

import pytest

import badges
from badges import LAYOUTS, get_layout, render, write_document
from errors import ConfigurationError, RenderError, SinkError
from roster import MemberRecord


class BadgeParser(HTMLParser):
    """Collects the text of each badge slot and checks tags are balanced"""

    VOID = {"img", "meta"}

    def __init__(self):
        super().__init__()
        self.stack = []
        self.badges = []
        self.pages = 0
        self.slot = None
        self.images = []

    def handle_starttag(self, tag, attrs):
        attrs = dict(attrs)
        classes = (attrs.get("class") or "").split()
        if tag == "img":
            self.images.append(attrs)
        if tag in self.VOID:
            return
        self.stack.append(tag)
        if "page" in classes:
            self.pages += 1
        if "badge" in classes:
            self.badges.append({})
        for cls in classes:
            if cls.startswith("badge-"):
                self.slot = cls
                self.badges[-1][cls] = ""

    def handle_endtag(self, tag):
        assert self.stack.pop() == tag
        self.slot = None

    def handle_data(self, data):
        if self.slot:
            self.badges[-1][self.slot] += data


def parse(document):
    parser = BadgeParser()
    parser.feed(document.content.decode("utf-8"))
    parser.close()
    assert parser.stack == []
    return parser


def people(n):
    return [
        MemberRecord("Person %d" % i, "p%d" % i, "Title %d" % i, "https://example.com/%d.png" % i)
        for i in range(n)
    ]


@pytest.mark.parametrize("name", sorted(LAYOUTS))
def test_render_one_badge_per_record_in_order(name):
    records = people(23)
    parsed = parse(render(records, get_layout(name)))

    assert [b["badge-name"] for b in parsed.badges] == [r.full_name for r in records]
    assert [i["src"] for i in parsed.images] == [r.image_url for r in records]


def test_render_pages():
    layout = get_layout("nafuda")
    parsed = parse(render(people(21), layout))
    assert parsed.pages == 3

    html = render(people(10), layout).content.decode("utf-8")
    assert html.count('class="page"') == 1
    assert "break" not in html.split("<body>")[1]


def test_render_geometry():
    html = render(people(1), get_layout("nafuda")).content.decode("utf-8")
    assert "size: A4;" in html
    assert "repeat(2, 91mm)" in html
    assert "grid-auto-rows: 55mm;" in html


def test_render_display_name_follows_layout():
    records = [MemberRecord("Ann Lee", "ann", "Engineer", "")]

    simple = parse(render(records, get_layout("badge"))).badges[0]
    assert "badge-display-name" not in simple
    assert simple["badge-title"] == "Engineer"

    nafuda = parse(render(records, get_layout("nafuda"))).badges[0]
    assert nafuda["badge-display-name"] == "ann"


def test_render_empty_slots_stay():
    records = [MemberRecord("Ann Lee", "", "", "")]
    html = render(records, get_layout("a4")).content.decode("utf-8")

    assert '<div class="badge-display-name"></div>' in html
    assert '<div class="badge-title"></div>' in html
    assert 'src=""' in html


def test_render_escapes_markup():
    records = [
        MemberRecord(
            '<script>alert("x")</script> & Co',
            "<b>",
            "R&D <lead>",
            'https://example.com/a.png" onerror="alert(1)',
        )
    ]
    document = render(records, get_layout("a4"))
    html = document.content.decode("utf-8")
    badge = parse(document).badges[0]

    assert "<script>" not in html
    assert "&lt;script&gt;" in html
    assert badge["badge-name"] == '<script>alert("x")</script> & Co'
    assert badge["badge-display-name"] == "<b>"
    assert badge["badge-title"] == "R&D <lead>"
    assert parse(document).images[0]["src"] == records[0].image_url


def test_render_is_deterministic():
    records = people(7)
    layout = get_layout("badge")
    assert render(records, layout) == render(list(records), layout)


def test_render_empty_roster():
    document = render([], get_layout("badge"))
    parsed = parse(document)

    assert parsed.badges == []
    assert document.content_type == "text/html; charset=utf-8"
    assert document.content.decode("utf-8").startswith("<!DOCTYPE html>")


def test_render_keeps_duplicates():
    record = MemberRecord("Ann", "", "", "")
    assert len(parse(render([record, record], get_layout("badge"))).badges) == 2


@pytest.mark.parametrize(
    "changes",
    [{"columns": 0}, {"rows_per_page": -1}, {"columns": "2"}, {"badge_width": ""}],
)
def test_render_rejects_bad_layout(changes):
    layout = get_layout("badge")._replace(**changes)
    with pytest.raises(RenderError):
        render(people(1), layout)


def test_render_template_error():
    with pytest.raises(RenderError):
        render(people(1), get_layout("badge"), template="{{ layout.nope }}")


def test_get_layout_unknown():
    with pytest.raises(ConfigurationError):
        get_layout("poster")


def test_write_document(tmp_path):
    path = str(tmp_path / "name_badges.html")
    document = render(people(2), get_layout("badge"))

    assert write_document(document, path) == path
    with open(path, "rb") as f:
        assert f.read() == document.content
    assert os.listdir(str(tmp_path)) == ["name_badges.html"]


def test_write_document_missing_directory(tmp_path):
    path = str(tmp_path / "nope" / "name_badges.html")
    with pytest.raises(SinkError):
        write_document(render([], get_layout("badge")), path)


def test_write_document_failure_leaves_old_file(tmp_path, monkeypatch):
    path = tmp_path / "name_badges.html"
    path.write_text("old")

    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(badges.os, "replace", broken_replace)
    with pytest.raises(SinkError):
        write_document(render(people(1), get_layout("badge")), str(path))

    assert path.read_text() == "old"
    assert os.listdir(str(tmp_path)) == ["name_badges.html"]


def test_write_document_interrupted_leaves_no_temp_file(tmp_path, monkeypatch):
    def interrupted_replace(src, dst):
        raise KeyboardInterrupt

    monkeypatch.setattr(badges.os, "replace", interrupted_replace)
    with pytest.raises(KeyboardInterrupt):
        write_document(render(people(1), get_layout("badge")), str(tmp_path / "out.html"))

    assert os.listdir(str(tmp_path)) == []


def test_write_document_new_file_follows_umask(tmp_path):
    path = tmp_path / "name_badges.html"
    old_umask = os.umask(0o022)
    try:
        write_document(render([], get_layout("badge")), str(path))
    finally:
        os.umask(old_umask)

    assert stat.S_IMODE(os.stat(str(path)).st_mode) == 0o644


def test_write_document_keeps_existing_mode(tmp_path):
    path = tmp_path / "name_badges.html"
    path.write_text("old")
    os.chmod(str(path), 0o640)

    write_document(render([], get_layout("badge")), str(path))

    assert stat.S_IMODE(os.stat(str(path)).st_mode) == 0o640
