from fastapi import APIRouter

from . import zendesk

api_router = APIRouter()

api_router.include_router(zendesk.router)


@api_router.get("/status")
async def api_status():
    """API status endpoint"""
    return {"status": "API is running", "version": "v1"}
