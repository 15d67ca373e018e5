from fastapi import APIRouter, Depends, HTTPException

from dependencies.services import get_hitoko_api_service
from services.hitoko_api import HitokoApiError, HitokoApiService

router = APIRouter(prefix="/api", tags=["shops"])


@router.get("/shops")
async def list_shops(
    api: HitokoApiService = Depends(get_hitoko_api_service),
) -> dict:
    try:
        return await api.get_shops()
    except HitokoApiError as exc:
        raise HTTPException(status_code=exc.status_code or 502, detail=str(exc))
    except RuntimeError as exc:
        raise HTTPException(status_code=503, detail=str(exc))


@router.get("/sessions/{shop_id}")
async def list_sessions(
    shop_id: str,
    page: int = 1,
    size: int = 30,
    api: HitokoApiService = Depends(get_hitoko_api_service),
) -> dict:
    try:
        return await api.get_session_list(shop_id, page=page, size=size)
    except HitokoApiError as exc:
        raise HTTPException(status_code=exc.status_code or 502, detail=str(exc))
    except RuntimeError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
