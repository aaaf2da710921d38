"""
Data Models
===========

Pydantic data models for snapshots, artifact keys and internal results.

Models:
- schemas: snapshot, artifact, batch, sync and API response schemas
"""
