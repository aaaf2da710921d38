"""
Routing
=======

Parses site route URLs and maps content to the artifact keys that must exist
for a snapshot. The key to path mapping itself lives on ``ArtifactKey``; it is
the contract with the serving layer and must not change without a migration.
"""

import re
from typing import Iterable, List, Optional, Set
from urllib.parse import quote, urlparse

from pydantic import BaseModel, Field

from social_sync.models.schemas import ArtifactCategory, ArtifactKey, Snapshot

ROUTE_TYPES = {"post", "category", "tag", "all-tags"}

PAGE_ID_PATTERN = re.compile(
    r"([a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12})$", re.IGNORECASE
)

ON_DEMAND_ENDPOINT = "/api/generate-social-image"


class ParsedUrl(BaseModel):
    """Routing information extracted from a site path."""

    segment: str = ""
    slug: str = ""
    subpage: str = ""
    is_subpage: bool = False
    segments: List[str] = Field(default_factory=list)
    full_path: str = "/"
    locale: Optional[str] = None

    @property
    def is_root(self) -> bool:
        return self.segment == ""

    @property
    def is_post(self) -> bool:
        return self.segment == "post"

    @property
    def is_category(self) -> bool:
        return self.segment == "category"

    @property
    def is_tag(self) -> bool:
        return self.segment == "tag"

    @property
    def is_all_tags(self) -> bool:
        return self.segment == "all-tags"


def parse_url_pathname(pathname: Optional[str], locales: Iterable[str] = ()) -> ParsedUrl:
    """
    Parse a site path such as ``/ko/post/my-post`` into its route parts.

    Absolute URLs are reduced to their path. Paths without a known route
    segment are treated as the root page.
    """
    if pathname and pathname.startswith(("http://", "https://")):
        pathname = urlparse(pathname).path

    if not pathname or pathname == "/":
        return ParsedUrl()

    segments = [part for part in pathname.strip("/").split("/") if part]
    if not segments:
        return ParsedUrl()

    locale = None
    route_segments = segments
    if len(segments) > 1 and segments[0] in set(locales):
        locale = segments[0]
        route_segments = segments[1:]

    route_index = next(
        (index for index, part in enumerate(route_segments) if part in ROUTE_TYPES), None
    )
    if route_index is None:
        return ParsedUrl()

    relevant = route_segments[route_index:]
    return ParsedUrl(
        segment=relevant[0],
        slug=relevant[1] if len(relevant) > 1 else "",
        subpage=relevant[-1],
        is_subpage=len(relevant) > 2,
        segments=relevant,
        full_path=pathname,
        locale=locale,
    )


def page_id_from_slug(slug: str) -> Optional[str]:
    """Extract the trailing page UUID of a subpage slug."""
    match = PAGE_ID_PATTERN.search(slug or "")
    return match.group(1) if match else None


def valid_keys(snapshot: Snapshot, locales: Iterable[str] = ()) -> Set[ArtifactKey]:
    """Every artifact key that should exist on disk for ``snapshot``."""
    keys: Set[ArtifactKey] = {ArtifactKey.root()}

    all_locales = set(locales) | set(snapshot.locales())
    for locale in all_locales:
        keys.add(ArtifactKey.all_tags(locale))
        for tag in snapshot.tags_for(locale):
            keys.add(ArtifactKey.for_tag(locale, tag))

    for page in snapshot.pages.values():
        key = ArtifactKey.for_page(page)
        if key is not None:
            keys.add(key)

    return keys


def key_for_url(parsed: ParsedUrl, default_locale: str) -> ArtifactKey:
    """Static artifact key for a parsed route; unknown routes map to root."""
    locale = parsed.locale or default_locale
    slug = parsed.subpage if parsed.is_subpage else parsed.slug
    if parsed.is_post and slug:
        return ArtifactKey(category=ArtifactCategory.POST, locale=locale, identifier=slug)
    if parsed.is_category and parsed.slug:
        return ArtifactKey(category=ArtifactCategory.CATEGORY, locale=locale, identifier=parsed.slug)
    if parsed.is_tag and parsed.slug:
        return ArtifactKey(category=ArtifactCategory.TAG, locale=locale, identifier=parsed.slug)
    if parsed.is_all_tags:
        return ArtifactKey.all_tags(locale)
    return ArtifactKey.root()


def social_image_url(url: str, locales: Iterable[str], default_locale: str) -> str:
    """
    Public image URL the serving layer should advertise for a page URL.

    Subpages are not part of the static artifact set and point at the
    on-demand endpoint instead.
    """
    parsed = parse_url_pathname(url, locales)
    if parsed.is_subpage:
        return f"{ON_DEMAND_ENDPOINT}?path={quote(url, safe='')}"
    return key_for_url(parsed, default_locale).public_url()
