from __future__ import annotations

from fastapi import APIRouter, Depends

from subsearch.api.deps import SearchServices, get_services
from subsearch.models.schemas import ModelInfo, ModelsResponse

router = APIRouter(prefix="/api/models", tags=["models"])


@router.get("", response_model=ModelsResponse)
async def list_models(services: SearchServices = Depends(get_services)):
    """List the answer models a search request may name in ``modelName``."""
    registry = services.registry
    return ModelsResponse(
        models=[
            ModelInfo(
                id=profile.model_id or "",
                name=profile.name,
                description=profile.description,
                max_results=profile.limits.max_results,
            )
            for profile in registry.profiles()
        ],
        default=registry.default.name,
    )
