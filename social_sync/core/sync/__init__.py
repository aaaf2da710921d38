"""
Sync Module
===========

Keeps the artifact tree consistent with the latest content snapshot.

Components:
- diff: Snapshot comparison
- state_store: Last synced snapshot persistence
- sweeper: Orphan cleanup
- orchestrator: Sync state machine
- cold_start: Bulk generation of missing artifacts
"""
