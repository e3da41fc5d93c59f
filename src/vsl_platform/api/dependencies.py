"""
FastAPI dependency providers.

Services are built once in the application lifespan and stored on
``app.state``; tests override these providers via ``app.dependency_overrides``.
"""

from fastapi import Request

from ..dictionary.synchronizer import IndexSynchronizer
from ..integration.inference_pipeline import InferencePipeline


def get_pipeline(request: Request) -> InferencePipeline:
    return request.app.state.pipeline


def get_synchronizer(request: Request) -> IndexSynchronizer:
    return request.app.state.synchronizer
