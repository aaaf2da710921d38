"""
Unit Tests for the Diff Engine
==============================

Change classification, tag comparison and the key sets a sync acts on.
"""

from datetime import datetime, timezone

import pytest

from social_sync.core.sync.diff import diff, has_page_changed, sorted_keys, summarize
from social_sync.models.schemas import ArtifactCategory, ArtifactKey, PageKind

from tests.utils.builders import make_page, make_snapshot


def post(locale: str, slug: str) -> ArtifactKey:
    return ArtifactKey(category=ArtifactCategory.POST, locale=locale, identifier=slug)


@pytest.fixture
def s1():
    return make_snapshot({"p1": make_page("a", "A")}, {"en": {}})


@pytest.fixture
def s2():
    return make_snapshot(
        {"p1": make_page("a", "A"), "p2": make_page("b", "B")},
        {"en": {"x": 1}},
    )


class TestScenarios:
    """Reference sync scenarios."""

    def test_new_page_and_new_tag(self, s1, s2):
        delta = diff(s1, s2)

        assert delta.to_generate == {post("en", "b"), ArtifactKey.for_tag("en", "x")}
        assert delta.to_delete_for_removal == frozenset()
        assert delta.to_delete_for_change == frozenset()

    def test_removed_page(self, s2):
        s3 = make_snapshot({"p2": make_page("b", "B")}, {"en": {"x": 1}})

        delta = diff(s2, s3)

        assert delta.to_delete_for_removal == {post("en", "a")}
        assert delta.to_generate == frozenset()
        assert delta.report.removed_pages == ["p1"]


class TestFirstRun:
    """Diffing without a previous snapshot."""

    def test_no_previous_snapshot_is_empty(self, s2):
        delta = diff(None, s2)

        assert delta.is_empty
        assert delta.report.new_pages == []

    def test_force_schedules_everything(self, s2):
        delta = diff(None, s2, force=True)

        assert delta.to_generate == {post("en", "a"), post("en", "b"), ArtifactKey.for_tag("en", "x")}
        assert {post("en", "a"), post("en", "b")} <= delta.to_delete_for_change


class TestPageClassification:
    """New, changed, unchanged and removed pages."""

    def test_every_shared_id_is_changed_or_unchanged(self):
        previous = make_snapshot(
            {"p1": make_page("a", "A"), "p2": make_page("b", "B"), "p3": make_page("c", "C")}
        )
        current = make_snapshot(
            {"p1": make_page("a", "A"), "p2": make_page("b", "B2"), "p4": make_page("d", "D")}
        )

        report = diff(previous, current).report

        assert report.unchanged_pages == ["p1"]
        assert report.changed_pages == ["p2"]
        assert report.new_pages == ["p4"]
        assert report.removed_pages == ["p3"]
        assert not set(report.unchanged_pages) & set(report.changed_pages)

    def test_changed_page_is_regenerated_and_cleared(self):
        previous = make_snapshot({"p1": make_page("a", "A")})
        current = make_snapshot({"p1": make_page("a", "A renamed")})

        delta = diff(previous, current)

        assert delta.to_generate == {post("en", "a")}
        assert delta.to_delete_for_change == {post("en", "a")}
        assert delta.stale_keys == {post("en", "a")}

    def test_unchanged_page_is_untouched(self, s1):
        delta = diff(s1, s1)

        assert delta.is_empty
        assert delta.report.unchanged_pages == ["p1"]

    def test_slug_change_clears_old_and_new_keys(self):
        previous = make_snapshot({"p1": make_page("old", "Title")})
        current = make_snapshot({"p1": make_page("new", "Title")})

        delta = diff(previous, current)

        assert delta.to_generate == {post("en", "new")}
        assert delta.to_delete_for_change == {post("en", "old"), post("en", "new")}

    def test_page_made_private_is_removed(self):
        previous = make_snapshot({"p1": make_page("a", "A")})
        current = make_snapshot({"p1": make_page("a", "A", public=False)})

        delta = diff(previous, current)

        assert delta.report.changed_pages == ["p1"]
        assert delta.to_delete_for_removal == {post("en", "a")}
        assert delta.to_generate == frozenset()

    def test_unroutable_new_page_generates_nothing(self, s1):
        current = make_snapshot(
            {"p1": make_page("a", "A"), "p9": make_page("about", kind=PageKind.PAGE)}
        )

        delta = diff(s1, current)

        assert delta.report.new_pages == ["p9"]
        assert delta.to_generate == frozenset()

    def test_category_page_key(self, s1):
        current = make_snapshot(
            {"p1": make_page("a", "A"), "c1": make_page("guides", kind=PageKind.CATEGORY)}
        )

        delta = diff(s1, current)

        assert delta.to_generate == {
            ArtifactKey(category=ArtifactCategory.CATEGORY, locale="en", identifier="guides")
        }


class TestFieldSensitivity:
    """Only tracked fields count as changes."""

    def test_untracked_field_is_unchanged(self):
        old = make_page("a", "A", order=1, description="first")
        new = make_page("a", "A", order=7, description="second")

        assert not has_page_changed(old, new)

    def test_title_change_is_changed(self):
        assert has_page_changed(make_page("a", "A"), make_page("a", "B"))

    @pytest.mark.parametrize(
        "field,value",
        [
            ("tags", ["python"]),
            ("authors", ["Kim"]),
            ("breadcrumb", ["Guides"]),
            ("cover_image", "/cover.png"),
            ("published_at", datetime(2024, 1, 5, tzinfo=timezone.utc)),
            ("public", False),
            ("kind", PageKind.HOME),
            ("locale", "ko"),
        ],
    )
    def test_each_tracked_field(self, field, value):
        assert has_page_changed(make_page("a", "A"), make_page("a", "A", **{field: value}))

    def test_tag_order_counts(self):
        old = make_page("a", "A", tags=["one", "two"])
        new = make_page("a", "A", tags=["two", "one"])

        assert has_page_changed(old, new)


class TestTags:
    """Per-locale tag presence."""

    def test_count_change_is_ignored(self):
        previous = make_snapshot(tag_counts={"en": {"x": 5}})
        current = make_snapshot(tag_counts={"en": {"x": 9}})

        delta = diff(previous, current)

        assert delta.is_empty
        assert delta.report.added_tags == {}
        assert delta.report.removed_tags == {}

    def test_missing_tag_is_removed(self):
        previous = make_snapshot(tag_counts={"en": {"x": 5}})
        current = make_snapshot(tag_counts={"en": {}})

        delta = diff(previous, current)

        assert delta.report.removed_tags == {"en": ["x"]}
        assert delta.to_delete_for_removal == {ArtifactKey.for_tag("en", "x")}

    def test_zero_count_is_absent(self):
        previous = make_snapshot(tag_counts={"en": {"x": 2}})
        current = make_snapshot(tag_counts={"en": {"x": 0}})

        assert diff(previous, current).report.removed_tags == {"en": ["x"]}

    def test_locales_are_independent(self):
        previous = make_snapshot(tag_counts={"en": {"x": 1}, "ko": {}})
        current = make_snapshot(tag_counts={"en": {}, "ko": {"x": 1}})

        delta = diff(previous, current)

        assert delta.to_generate == {ArtifactKey.for_tag("ko", "x")}
        assert delta.to_delete_for_removal == {ArtifactKey.for_tag("en", "x")}

    def test_locale_missing_from_current(self):
        previous = make_snapshot(tag_counts={"en": {}, "ko": {"y": 3}})
        current = make_snapshot(tag_counts={"en": {}})

        delta = diff(previous, current, locales=["en", "ko"])

        assert delta.to_delete_for_removal == {ArtifactKey.for_tag("ko", "y")}

    def test_new_tag_is_stale_key(self, s1, s2):
        delta = diff(s1, s2)

        assert ArtifactKey.for_tag("en", "x") in delta.stale_keys
        assert post("en", "b") not in delta.stale_keys

    def test_encoded_identifier(self):
        previous = make_snapshot(tag_counts={"en": {}})
        current = make_snapshot(tag_counts={"en": {"c++ tips": 1}})

        (key,) = diff(previous, current).to_generate

        assert key.identifier == "c%2B%2B%20tips"


class TestHelpers:
    """Summary and ordering helpers."""

    def test_summarize(self, s1, s2):
        summary = summarize(diff(s1, s2))

        assert summary["new_pages"] == 1
        assert summary["added_tags"] == 1
        assert summary["to_generate"] == 2
        assert summary["to_delete"] == 1

    def test_sorted_keys(self):
        keys = [ArtifactKey.for_tag("en", "b"), post("ko", "a"), ArtifactKey.root(), post("en", "z")]

        assert [str(key) for key in sorted_keys(keys)] == [
            "post/en/z",
            "post/ko/a",
            "root",
            "tag/en/b",
        ]
