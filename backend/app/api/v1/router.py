from typing import List

from fastapi import APIRouter

from app.api.v1.endpoints import records, users
from app.modules.portfolio.registry import KINDS
from app.schemas.record import KindResponse

api_router = APIRouter()

api_router.include_router(users.router)

for record_router in records.record_routers:
    api_router.include_router(record_router)


@api_router.get("/kinds", response_model=List[KindResponse], tags=["Records"])
async def list_kinds():
    """Registered record kinds with their field rules"""
    return [spec.to_dict() for spec in KINDS]
