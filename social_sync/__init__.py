"""
Social Image Sync
=================

Renders 1200x630 social preview cards for every page of a statically
generated content site and keeps the generated image tree in step with the
latest content snapshot.

This package provides:
- Headless browser management and card rendering with Playwright
- Bounded-concurrency batch generation with per-task failure isolation
- Snapshot diffing, persisted sync state and orphan cleanup
- FastAPI endpoints for on-demand cards and sync triggering
"""

__version__ = "1.0.0"
