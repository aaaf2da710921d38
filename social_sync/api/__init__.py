"""
FastAPI REST Endpoints
======================

HTTP access to card rendering and sync triggering.

Endpoints:
- GET /api/generate-social-image: On-demand card render
- POST /api/v1/sync: Publish a refreshed snapshot
- GET /api/v1/sync/status: Current sync phase and progress
- GET /health: Health check endpoint
"""
