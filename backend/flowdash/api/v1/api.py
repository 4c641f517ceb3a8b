from fastapi import APIRouter
from flowdash.api.v1.endpoints import (
    auth,
    users,
    organizations,
    settings,
    products,
    inventory,
    distinct,
    media,
    reports,
)

api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(organizations.router, prefix="/organizations", tags=["organizations"])
api_router.include_router(settings.router, prefix="/settings", tags=["settings"])
api_router.include_router(products.router, prefix="/products", tags=["products"])
api_router.include_router(inventory.router, prefix="/inventory", tags=["inventory"])
api_router.include_router(distinct.router, prefix="/distinct", tags=["distinct"])
api_router.include_router(media.router, prefix="/media", tags=["media"])
api_router.include_router(reports.router, prefix="/reports", tags=["reports"])
