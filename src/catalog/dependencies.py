"""FastAPI dependencies for the catalog."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import CatalogService


async def get_catalog_service(request: Request) -> CatalogService:
    """Get catalog service from app state."""
    catalog_service = getattr(request.app.state, "catalog_service", None)
    if catalog_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Catalog service not available",
        )
    return catalog_service


CatalogServiceDep = Annotated[CatalogService, Depends(get_catalog_service)]
