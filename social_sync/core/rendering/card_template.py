"""
Social Card Template
====================

Builds the static markup of a social card from a target route and a content
snapshot. Page data reaches the template only through
``PageRecord.card_fields()``, the same field set the diff engine watches.
"""

from typing import Dict, List, Any, Optional
from datetime import datetime
from pathlib import Path
import re

import jinja2

from social_sync.config.logging import get_logger
from social_sync.config.settings import Settings, get_settings
from social_sync.core.routing import ParsedUrl, page_id_from_slug, parse_url_pathname
from social_sync.models.schemas import PageKind, Snapshot, decode_tag

logger = get_logger(__name__)

POST_KINDS = frozenset({PageKind.POST, PageKind.HOME})
CATEGORY_KINDS = frozenset({PageKind.CATEGORY})

MAX_BREADCRUMB_ITEM = 20
MAX_BREADCRUMB_ITEMS = 3
MAX_TAG_LENGTH = 10
MAX_VISIBLE_TAGS = 3
MAX_ICON_TITLE = 40

SUBPAGE_ID_SUFFIX = re.compile(r"-[a-f0-9-]{36}$", re.IGNORECASE)


class CardTemplateError(Exception):
    """Exception raised when card markup cannot be produced."""

    pass


def truncate(text: str, limit: int) -> str:
    """Shorten ``text`` to ``limit`` characters including a trailing ellipsis."""
    return text if len(text) <= limit else text[: limit - 3] + "..."


def collapse_breadcrumb(items: List[str]) -> List[str]:
    """Keep the first and the last two items of long trails."""
    if len(items) > MAX_BREADCRUMB_ITEMS:
        items = [items[0], "...", *items[-2:]]
    return [item if item == "..." else truncate(item, MAX_BREADCRUMB_ITEM) for item in items]


def icon_title_font_size(text: str) -> str:
    length = len(text)
    for limit, size in ((10, 96), (15, 80), (20, 72), (25, 64), (30, 56), (35, 48)):
        if length <= limit:
            return f"{size}px"
    return "42px"


def format_date(value: datetime) -> str:
    """Format like ``January 5, 2024``."""
    return f"{value:%B} {value.day}, {value.year}"


def title_from_subpage_slug(slug: str) -> str:
    return SUBPAGE_ID_SUFFIX.sub("", slug).replace("-", " ").strip() or "Untitled"


def build_document(markup: str, base_url: str) -> str:
    """Wrap card markup into a complete HTML document."""
    return (
        "<!DOCTYPE html>\n"
        "<html>\n"
        "  <head>\n"
        '    <meta charset="utf-8">\n'
        f'    <base href="{base_url.rstrip("/")}/">\n'
        "  </head>\n"
        "  <body>\n"
        f"{markup}\n"
        "  </body>\n"
        "</html>\n"
    )


class SocialCardRenderer:
    """Jinja2-based social card markup generator."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self.logger: Any = logger.bind(component="card_template")
        template_dir = Path(__file__).parent / "templates"
        self.env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(template_dir)),
            autoescape=jinja2.select_autoescape(["html", "xml"]),
            enable_async=True,
        )
        self.template = self.env.get_template("social_card.html")

    async def render(
        self,
        target_url: str,
        snapshot: Snapshot,
        image_url: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> str:
        """
        Render card markup for a site route.

        Args:
            target_url: Route the card represents, e.g. ``/en/post/hello``
            snapshot: Content the card is drawn from
            image_url: Explicit background override
            base_url: Origin used to make root-relative asset URLs absolute

        Returns:
            Static card markup (no surrounding document)
        """
        base_url = (base_url or self.settings.base_url).rstrip("/")
        locales = list(dict.fromkeys([*self.settings.all_locales, *snapshot.locales()]))
        parsed = parse_url_pathname(target_url, locales)
        context = self.build_context(parsed, snapshot, image_url, base_url)
        try:
            return await self.template.render_async(**context)
        except jinja2.TemplateError as e:
            raise CardTemplateError(f"Card template failed for {target_url}: {e}") from e

    def build_context(
        self,
        parsed: ParsedUrl,
        snapshot: Snapshot,
        image_url: Optional[str],
        base_url: str,
    ) -> Dict[str, Any]:
        """Template context for one card."""

        def absolute(url: Optional[str]) -> Optional[str]:
            if url and url.startswith("/"):
                return f"{base_url}{url}"
            return url

        locale = parsed.locale or self.settings.default_locale
        context: Dict[str, Any] = {
            "variant": "root",
            "site_name": self.settings.site_name,
            "icon_url": absolute(self.settings.site_icon),
            "background_url": absolute(image_url or self.settings.default_background),
            "width": self.settings.image_width,
            "height": self.settings.image_height,
        }

        if parsed.is_post:
            context.update(self._post_context(parsed, snapshot, locale, absolute))
            if not image_url and context.get("cover_image"):
                context["background_url"] = absolute(context["cover_image"])
        elif parsed.is_category:
            fields = self._page_fields(snapshot, CATEGORY_KINDS, parsed.slug, locale)
            title = (fields or {}).get("title") or parsed.slug or "Category"
            context.update(self._icon_title("category", title))
            cover = (fields or {}).get("cover_image")
            if not image_url and cover:
                context["background_url"] = absolute(cover)
        elif parsed.is_tag:
            tag = decode_tag(parsed.slug) if parsed.slug else "Tag"
            context.update(self._icon_title("tag", f"#{tag}"))
        elif parsed.is_all_tags:
            context.update(self._icon_title("all-tags", "All Tags"))

        return context

    def _page_fields(
        self, snapshot: Snapshot, kinds: frozenset, slug: str, locale: str
    ) -> Optional[Dict[str, Any]]:
        page = snapshot.find_page(kinds, slug, locale)
        return page.card_fields() if page else None

    def _icon_title(self, variant: str, text: str) -> Dict[str, Any]:
        return {
            "variant": variant,
            "title": text[:MAX_ICON_TITLE] + "..." if len(text) > MAX_ICON_TITLE else text,
            "title_font_size": icon_title_font_size(text),
        }

    def _post_context(
        self, parsed: ParsedUrl, snapshot: Snapshot, locale: str, absolute: Any
    ) -> Dict[str, Any]:
        if parsed.is_subpage:
            page_id = page_id_from_slug(parsed.subpage)
            page = snapshot.pages.get(page_id) if page_id else None
            fields = page.card_fields() if page else {}
            title = fields.get("title") or title_from_subpage_slug(parsed.subpage)
            return {
                "variant": "subpage",
                "title": title,
                "cover_image": fields.get("cover_image"),
                "breadcrumb": collapse_breadcrumb([*fields.get("breadcrumb", []), title]),
            }

        fields = self._page_fields(snapshot, POST_KINDS, parsed.slug, locale) or {}
        title = fields.get("title") or "Post"
        breadcrumb = [*fields.get("breadcrumb", []), title] if fields else []

        authors = [author for author in fields.get("authors", []) if author and author.strip()]
        first_author = authors[0] if authors else None
        avatar = None
        if first_author:
            profile = next(
                (item for item in self.settings.authors if item.name == first_author), None
            )
            avatar = absolute(profile.avatar) if profile and profile.avatar else None

        tags = [tag for tag in fields.get("tags", []) if tag and tag.strip()]
        published_at = fields.get("published_at")

        return {
            "variant": "post",
            "title": title,
            "cover_image": fields.get("cover_image"),
            "breadcrumb": collapse_breadcrumb(breadcrumb),
            "author": first_author,
            "author_avatar": avatar,
            "extra_authors": max(len(authors) - 1, 0),
            "tags": [truncate(tag, MAX_TAG_LENGTH) for tag in tags[:MAX_VISIBLE_TAGS]],
            "extra_tags": max(len(tags) - MAX_VISIBLE_TAGS, 0),
            "date": format_date(published_at) if published_at else None,
        }
