"""API route handlers."""

from .matches import router as matches_router
from .wallet import router as wallet_router
