from fastapi import APIRouter
from app.routers import auth, employees, reviews, system, views

# Centralized API router hub
# Routers are aggregated here and main.py only imports this single hub.
api_router = APIRouter()

api_router.include_router(auth.router, tags=["Authentication"])
api_router.include_router(views.router, tags=["Views"])
api_router.include_router(employees.router, tags=["Employees"])
api_router.include_router(reviews.router, tags=["Reviews"])
api_router.include_router(system.router, tags=["System"])
