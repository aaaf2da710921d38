"""
Pydantic Models and Schemas
===========================

Core data models for content snapshots, artifact keys, render tasks, sync
results and API responses. Snapshot-side models are frozen: a snapshot is
created once per refresh and never mutated.
"""

from typing import Optional, List, Dict, Any, FrozenSet, Tuple
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from urllib.parse import quote, unquote

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Enums
class PageKind(str, Enum):
    """Content page kinds."""
    POST = "Post"
    HOME = "Home"
    CATEGORY = "Category"
    PAGE = "Page"


class ArtifactCategory(str, Enum):
    """Artifact kinds, one output directory each."""
    ROOT = "root"
    POST = "post"
    CATEGORY = "category"
    TAG = "tag"
    ALL_TAGS = "all-tags"


class SyncPhase(str, Enum):
    """Sync orchestrator states."""
    IDLE = "idle"
    COMPARING = "comparing"
    DELETING = "deleting"
    GENERATING = "generating"
    SWEEPING = "sweeping"
    PERSISTING = "persisting"


class SyncStatus(str, Enum):
    """Outcome of one sync invocation."""
    COMPLETED = "completed"
    FIRST_RUN = "first_run"
    FAILED = "failed"


# Kinds that have a public route and therefore a card.
ROUTABLE_KINDS: FrozenSet[PageKind] = frozenset({PageKind.POST, PageKind.HOME, PageKind.CATEGORY})

# The only page fields a rendered card depends on. Change detection and the
# card template both read pages through this tuple.
TRACKED_PAGE_FIELDS: Tuple[str, ...] = (
    "title",
    "kind",
    "locale",
    "public",
    "published_at",
    "tags",
    "authors",
    "breadcrumb",
    "cover_image",
)

# encodeURIComponent leaves these unescaped
_TAG_SAFE_CHARS = "-_.!~*'()"


def encode_tag(tag: str) -> str:
    """Percent-encode a tag the way browser route segments are encoded."""
    return quote(tag, safe=_TAG_SAFE_CHARS)


def decode_tag(encoded: str) -> str:
    return unquote(encoded)


# Snapshot Models
class PageRecord(BaseModel):
    """One content page as seen by the sync pipeline."""
    model_config = ConfigDict(frozen=True)

    kind: PageKind = Field(..., description="Page kind")
    locale: Optional[str] = Field(None, description="Page locale")
    slug: Optional[str] = Field(None, description="Route slug, unique within (locale, kind)")
    title: str = Field("", description="Page title")
    public: bool = Field(True, description="Publicly visible")
    tags: List[str] = Field(default_factory=list, description="Tags in display order")
    authors: List[str] = Field(default_factory=list, description="Authors in display order")
    published_at: Optional[datetime] = Field(None, description="Publication time")
    cover_image: Optional[str] = Field(None, description="Cover image URL")
    breadcrumb: List[str] = Field(default_factory=list, description="Ancestor titles")

    # Not rendered on the card
    description: Optional[str] = Field(None, description="Page description")
    parent_page_id: Optional[str] = Field(None, description="Parent page identifier")
    order: Optional[int] = Field(None, description="Ordering among siblings")
    last_edited_at: Optional[datetime] = Field(None, description="Last edit time")

    @property
    def is_routable(self) -> bool:
        return (
            self.public and self.kind in ROUTABLE_KINDS and bool(self.slug) and bool(self.locale)
        )

    def card_fields(self) -> Dict[str, Any]:
        """Values of the fields the rendered card depends on."""
        return {name: getattr(self, name) for name in TRACKED_PAGE_FIELDS}


class Snapshot(BaseModel):
    """Immutable point-in-time view of all pages and per-locale tag counts."""
    model_config = ConfigDict(frozen=True)

    pages: Dict[str, PageRecord] = Field(default_factory=dict, description="Pages by entity id")
    tag_counts: Dict[str, Dict[str, int]] = Field(
        default_factory=dict, description="Tag counts per locale"
    )
    captured_at: datetime = Field(default_factory=utcnow, description="Capture time")

    def locales(self) -> List[str]:
        """Locales referenced by pages or tag counts, sorted."""
        found = set(self.tag_counts)
        found.update(page.locale for page in self.pages.values() if page.locale)
        return sorted(found)

    def tags_for(self, locale: str) -> List[str]:
        """Tags that currently have a positive count in ``locale``."""
        counts = self.tag_counts.get(locale) or {}
        return [tag for tag, count in counts.items() if count and count > 0]

    def find_page(
        self, kinds: FrozenSet[PageKind], slug: str, locale: str
    ) -> Optional[PageRecord]:
        for page in self.pages.values():
            if page.kind in kinds and page.slug == slug and page.locale == locale:
                return page
        return None


# Artifact Models
class ArtifactKey(BaseModel):
    """Identifies one generated card. Ordered by category, locale, identifier."""
    model_config = ConfigDict(frozen=True)

    category: ArtifactCategory
    locale: Optional[str] = None
    identifier: str

    @classmethod
    def root(cls) -> "ArtifactKey":
        return cls(category=ArtifactCategory.ROOT, locale=None, identifier="root")

    @classmethod
    def all_tags(cls, locale: str) -> "ArtifactKey":
        return cls(category=ArtifactCategory.ALL_TAGS, locale=locale, identifier="all-tags")

    @classmethod
    def for_tag(cls, locale: str, tag: str) -> "ArtifactKey":
        return cls(category=ArtifactCategory.TAG, locale=locale, identifier=encode_tag(tag))

    @classmethod
    def for_page(cls, page: PageRecord) -> Optional["ArtifactKey"]:
        """Key of a page's card, or None for pages without a public route."""
        if not page.is_routable:
            return None
        category = (
            ArtifactCategory.CATEGORY if page.kind == PageKind.CATEGORY else ArtifactCategory.POST
        )
        return cls(category=category, locale=page.locale, identifier=page.slug)

    @property
    def filename(self) -> str:
        return f"{self.identifier}.jpg"

    @property
    def relative_path(self) -> str:
        """Path below the artifact root."""
        if self.category == ArtifactCategory.ROOT:
            return "root.jpg"
        if self.category == ArtifactCategory.ALL_TAGS:
            return f"{self.locale}/all-tags.jpg"
        return f"{self.locale}/{self.category.value}/{self.filename}"

    def file_path(self, root: Path) -> Path:
        return root.joinpath(*self.relative_path.split("/"))

    def public_url(self, prefix: str = "/social-images") -> str:
        return f"{prefix}/{self.relative_path}"

    @property
    def target_url(self) -> str:
        """Site route the card is rendered for."""
        if self.category == ArtifactCategory.ROOT:
            return "/"
        if self.category == ArtifactCategory.ALL_TAGS:
            return f"/{self.locale}/all-tags"
        return f"/{self.locale}/{self.category.value}/{self.identifier}"

    def sort_key(self) -> Tuple[str, str, str]:
        return (self.category.value, self.locale or "", self.identifier)

    def __str__(self) -> str:
        if self.category == ArtifactCategory.ROOT:
            return "root"
        return f"{self.category.value}/{self.locale}/{self.identifier}"


class RenderTask(BaseModel):
    """Pure input to the render engine."""
    model_config = ConfigDict(frozen=True)

    artifact_key: Optional[ArtifactKey] = Field(None, description="Artifact being rendered")
    target_url: str = Field(..., description="Route rendered on the card")
    snapshot: Snapshot = Field(default_factory=Snapshot, description="Content used by the card")
    image_url: Optional[str] = Field(None, description="Explicit background override")


class BatchTask(BaseModel):
    """A render task together with its output location."""
    task: RenderTask
    output_path: Path
    public_url: str

    @property
    def label(self) -> str:
        return str(self.task.artifact_key) if self.task.artifact_key else self.task.target_url


# Result Models
class TaskError(BaseModel):
    """A failed batch task."""
    artifact: str = Field(..., description="Artifact key or target URL")
    error: str = Field(..., description="Error message")


class BatchResult(BaseModel):
    """Aggregate outcome of a batch run."""
    success_count: int = Field(0, ge=0)
    failure_count: int = Field(0, ge=0)
    skipped_count: int = Field(0, ge=0, description="Satisfied by an existing file")
    rendered_count: int = Field(0, ge=0)
    errors: List[TaskError] = Field(default_factory=list)
    duration: float = Field(0.0, description="Run time in seconds")

    @property
    def total(self) -> int:
        return self.success_count + self.failure_count


class BatchProgress(BaseModel):
    """Progress after one completed batch."""
    completed: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    batch_index: int = Field(..., ge=0)
    batch_count: int = Field(..., ge=0)

    @property
    def percent(self) -> int:
        return round(self.completed / self.total * 100) if self.total else 100


class DiffReport(BaseModel):
    """Per-entity classification behind a sync delta."""
    new_pages: List[str] = Field(default_factory=list)
    changed_pages: List[str] = Field(default_factory=list)
    unchanged_pages: List[str] = Field(default_factory=list)
    removed_pages: List[str] = Field(default_factory=list)
    added_tags: Dict[str, List[str]] = Field(default_factory=dict)
    removed_tags: Dict[str, List[str]] = Field(default_factory=dict)


class SyncDelta(BaseModel):
    """Artifacts to (re)generate and to delete."""
    model_config = ConfigDict(frozen=True)

    to_generate: FrozenSet[ArtifactKey] = frozenset()
    to_delete_for_removal: FrozenSet[ArtifactKey] = frozenset()
    to_delete_for_change: FrozenSet[ArtifactKey] = frozenset()
    report: DiffReport = Field(default_factory=DiffReport)

    @property
    def stale_keys(self) -> FrozenSet[ArtifactKey]:
        """Files to clear before generation: changed pages plus new tags."""
        new_tags = {key for key in self.to_generate if key.category == ArtifactCategory.TAG}
        return self.to_delete_for_change | new_tags

    @property
    def is_empty(self) -> bool:
        return not (self.to_generate or self.to_delete_for_removal or self.to_delete_for_change)


class SweepResult(BaseModel):
    """Outcome of an orphan sweep."""
    deleted: List[str] = Field(default_factory=list, description="Deleted paths")
    failed: List[str] = Field(default_factory=list, description="Paths that could not be deleted")


class SyncState(BaseModel):
    """Persisted state of the last completed sync."""
    snapshot: Snapshot
    last_updated: datetime = Field(default_factory=utcnow)


class SnapshotRefreshed(BaseModel):
    """Published whenever the content layer produces a new snapshot."""
    snapshot: Snapshot
    refreshed_at: datetime = Field(default_factory=utcnow)


class SyncReport(BaseModel):
    """Outcome of one sync invocation."""
    status: SyncStatus
    generated: int = Field(0, description="Artifacts scheduled for generation")
    deleted: int = Field(0, description="Artifacts deleted for removal or change")
    swept: int = Field(0, description="Orphans removed by the sweep")
    batch: Optional[BatchResult] = None
    persisted: bool = False
    error: Optional[str] = None
    started_at: datetime = Field(default_factory=utcnow)
    duration: float = 0.0


# API Models
class SyncAccepted(BaseModel):
    """Response to a sync trigger."""
    accepted: bool = Field(..., description="False when a sync was already running")
    phase: SyncPhase


class SyncStatusResponse(BaseModel):
    """Current orchestrator status."""
    phase: SyncPhase
    progress: Optional[BatchProgress] = None
    last_report: Optional[SyncReport] = None


class HealthStatus(BaseModel):
    """Health check status."""
    status: str = Field(..., description="healthy, degraded or unhealthy")
    timestamp: datetime = Field(default_factory=utcnow, description="Check timestamp")
    version: str = Field(..., description="Application version")
    browser: Dict[str, Any] = Field(default_factory=dict, description="Browser manager status")
    sync_phase: SyncPhase = Field(SyncPhase.IDLE, description="Current sync phase")


class ErrorResponse(BaseModel):
    """Standard error response model."""
    error: str = Field(..., description="Error message")
    error_code: Optional[str] = Field(None, description="Error code")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
    timestamp: datetime = Field(default_factory=utcnow, description="Error timestamp")
    request_id: Optional[str] = Field(None, description="Request identifier for tracking")
