"""API v1 router that aggregates all endpoint routers."""

from fastapi import APIRouter

from recommendation_engine.api.v1 import (
    health,
    products,
    recommendations,
    scores,
)

api_router = APIRouter()

api_router.include_router(
    health.router,
    tags=["Health"],
)

api_router.include_router(
    recommendations.router,
    prefix="/recommendations",
    tags=["Recommendations"],
)

api_router.include_router(
    products.router,
    prefix="/products",
    tags=["Product Recommendations"],
)

api_router.include_router(
    scores.router,
    prefix="/scores",
    tags=["Scores"],
)
