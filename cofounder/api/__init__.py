"""API router for v1 endpoints."""

from fastapi import APIRouter

from cofounder.api import actions, decisions, learning, preferences

router = APIRouter()

router.include_router(decisions.router, tags=["decisions"])
router.include_router(preferences.router, tags=["preferences"])
router.include_router(learning.router, tags=["learning"])
router.include_router(actions.router, tags=["actions"])
