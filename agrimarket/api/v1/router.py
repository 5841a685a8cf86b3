from fastapi import APIRouter

from agrimarket.api.v1.endpoints import crops, orders


api_router = APIRouter(prefix="/api/v1")

api_router.include_router(crops.router, prefix="/crops")
api_router.include_router(orders.router, prefix="/orders")
