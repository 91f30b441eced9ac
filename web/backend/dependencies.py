#!/usr/bin/env python3
"""
FastAPI dependencies for dependency injection.
"""

import os
import uuid
from functools import lru_cache

from fastapi import Header, HTTPException

from core.app_context import AppContext
from core.config_loader import load_config


@lru_cache()
def get_app_context() -> AppContext:
    """
    Wired application context, built once per process.

    Usage:
        @router.get("/endpoint")
        def my_endpoint(ctx: AppContext = Depends(get_app_context)):
            ...
    """
    return AppContext.build(load_config(os.environ.get("CONFIG_PATH", "config.yaml")))


def get_current_user_id(x_user_id: str = Header(..., description="Authenticated user id")) -> uuid.UUID:
    """
    Identity set by the upstream authentication layer.
    """
    try:
        return uuid.UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid X-User-Id: {x_user_id}. Must be a valid UUID."
        )
