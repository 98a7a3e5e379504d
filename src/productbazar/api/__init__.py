"""API routes."""

from fastapi import APIRouter

from productbazar.api.routes import auth, health, jobs, products, search, users, views

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(products.router, prefix="/products", tags=["products"])
api_router.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
api_router.include_router(search.router, prefix="/search", tags=["search"])

auth_router = auth.router
views_router = views.router
