from fastapi import APIRouter
from api.country_routes import router as country_router
from api.refresh_routes import router as refresh_router

router = APIRouter()

# Both routers are mounted under /api by main.py
router.include_router(refresh_router, tags=["Bulk Refresh"])
router.include_router(country_router, tags=["Countries"])
