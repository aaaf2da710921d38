"""
Diff Engine
===========

Compares two snapshots and decides which artifacts to (re)generate and which
to delete. Pure: no I/O, no clock, no settings lookup.
"""

from typing import Dict, Iterable, List, Optional, Set

from social_sync.models.schemas import (
    ArtifactKey,
    DiffReport,
    PageRecord,
    Snapshot,
    SyncDelta,
)


def has_page_changed(old: PageRecord, new: PageRecord) -> bool:
    """True if any field the card depends on differs."""
    return old.card_fields() != new.card_fields()


def diff(
    previous: Optional[Snapshot],
    current: Snapshot,
    locales: Iterable[str] = (),
    force: bool = False,
) -> SyncDelta:
    """
    Compute the sync delta between two snapshots.

    Args:
        previous: Last synced snapshot, None on the first run
        current: Snapshot to sync to
        locales: Locales to compare in addition to those found in the snapshots
        force: Schedule every routable page and every tag regardless of changes

    Returns:
        SyncDelta. Empty when ``previous`` is None and ``force`` is off: the
        initial artifact set is produced by a cold-start run, not by diffing.
    """
    if previous is None and not force:
        return SyncDelta()

    previous_pages = previous.pages if previous is not None else {}
    report = DiffReport()
    to_generate: Set[ArtifactKey] = set()
    for_removal: Set[ArtifactKey] = set()
    for_change: Set[ArtifactKey] = set()

    for page_id in sorted(current.pages):
        page = current.pages[page_id]
        old_page = previous_pages.get(page_id)
        key = ArtifactKey.for_page(page)

        if old_page is None:
            report.new_pages.append(page_id)
            if key is not None:
                to_generate.add(key)
                if force:
                    for_change.add(key)
            continue

        changed = has_page_changed(old_page, page)
        if changed:
            report.changed_pages.append(page_id)
        else:
            report.unchanged_pages.append(page_id)
            if not force:
                continue

        old_key = ArtifactKey.for_page(old_page)
        if key is not None:
            to_generate.add(key)
            for_change.add(key)
            if old_key is not None and old_key != key:
                for_change.add(old_key)
        elif old_key is not None:
            # No longer routable: the old card has nothing to describe
            for_removal.add(old_key)

    for page_id in sorted(set(previous_pages) - set(current.pages)):
        report.removed_pages.append(page_id)
        old_key = ArtifactKey.for_page(previous_pages[page_id])
        if old_key is not None:
            for_removal.add(old_key)

    compared = set(locales) | set(current.tag_counts)
    if previous is not None:
        compared |= set(previous.tag_counts)

    for locale in sorted(compared):
        old_tags = set(previous.tags_for(locale)) if previous is not None else set()
        new_tags = set(current.tags_for(locale))

        added = new_tags if force else new_tags - old_tags
        removed = old_tags - new_tags

        if added:
            report.added_tags[locale] = sorted(added)
            to_generate.update(ArtifactKey.for_tag(locale, tag) for tag in added)
        if removed:
            report.removed_tags[locale] = sorted(removed)
            for_removal.update(ArtifactKey.for_tag(locale, tag) for tag in removed)

    return SyncDelta(
        to_generate=frozenset(to_generate),
        to_delete_for_removal=frozenset(for_removal),
        to_delete_for_change=frozenset(for_change),
        report=report,
    )


def summarize(delta: SyncDelta) -> Dict[str, int]:
    """Counts for log lines."""
    report = delta.report
    return {
        "new_pages": len(report.new_pages),
        "changed_pages": len(report.changed_pages),
        "unchanged_pages": len(report.unchanged_pages),
        "removed_pages": len(report.removed_pages),
        "added_tags": sum(len(tags) for tags in report.added_tags.values()),
        "removed_tags": sum(len(tags) for tags in report.removed_tags.values()),
        "to_generate": len(delta.to_generate),
        "to_delete": len(delta.to_delete_for_removal | delta.stale_keys),
    }


def sorted_keys(keys: Iterable[ArtifactKey]) -> List[ArtifactKey]:
    return sorted(keys, key=ArtifactKey.sort_key)
