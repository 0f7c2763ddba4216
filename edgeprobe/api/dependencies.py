"""FastAPI Depends() callables for collaborators published on app.state."""

from __future__ import annotations

from fastapi import Request

from config import Settings
from lib.metadata import ClientMetadataProvider
from lib.payload import RandomSource


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_metadata_provider(request: Request) -> ClientMetadataProvider:
    return request.app.state.metadata_provider


def get_random_source(request: Request) -> RandomSource:
    return request.app.state.random_source
