"""
API Dependencies
================

FastAPI dependencies resolving the process-wide services.
"""

from fastapi import Request

from social_sync.config.settings import Settings
from social_sync.core.services import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
