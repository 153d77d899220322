"""API routes"""

from fastapi import APIRouter, Query, Request

from ..service import BitcoinService

router = APIRouter()


def get_service(request: Request) -> BitcoinService:
    return request.app.state.service


def _payload(response) -> dict:
    return response.model_dump(mode="json")


@router.get("/blocks/{height}")
async def get_block(
    height: int,
    request: Request,
    refresh: bool = Query(False, description="Bypass fresh cache entries"),
):
    """Block information by height"""
    service = get_service(request)
    return _payload(await service.get_block_info(height, force_refresh=refresh))


@router.get("/inscriptions/{inscription_id}")
async def get_inscription(
    inscription_id: str,
    request: Request,
    refresh: bool = Query(False, description="Bypass fresh cache entries"),
):
    """Inscription content by ID"""
    service = get_service(request)
    return _payload(await service.get_inscription_content(inscription_id, force_refresh=refresh))


@router.get("/blockheight")
async def get_block_height(request: Request):
    """Current chain tip"""
    service = get_service(request)
    return {"height": await service.get_current_block_height()}


@router.get("/stats")
async def get_stats(request: Request):
    """Cache, circuit and traffic counters"""
    service = get_service(request)
    return {
        "cache": service.get_cache_stats(),
        "circuit": service.get_circuit_state(),
        "metrics": service.get_metrics(),
    }
