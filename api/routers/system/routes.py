import logging

from fastapi import APIRouter, Request
from scalar_fastapi import get_scalar_api_reference

from api.database import get_engine
from api.dependencies import get_notifier

router = APIRouter()


@router.on_event("shutdown")
async def shutdown():
    # let in-flight notifications finish before the loop goes away
    await get_notifier().drain()
    await get_engine().dispose()
    logging.info("Shutdown complete")


@router.get("/check-health", include_in_schema=False)
def check_health():
    return {"ok": True}


@router.get("/scalar", include_in_schema=False)
def get_scalar(request: Request):
    app = request.app
    return get_scalar_api_reference(
        title=app.title,
        openapi_url=app.openapi_url,
    )
