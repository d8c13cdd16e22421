"""FastAPI dependencies for progress tracking.

Provides dependency injection for:
- Progress and stats services
- Error handlers
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .exceptions import ProgressError
from .service import ProgressService
from .stats import StatsService


async def get_progress_service(request: Request) -> ProgressService:
    """Get progress service from app state."""
    progress_service = getattr(request.app.state, "progress_service", None)
    if progress_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Progress service not available",
        )
    return progress_service


async def get_stats_service(request: Request) -> StatsService:
    """Get stats service from app state."""
    stats_service = getattr(request.app.state, "stats_service", None)
    if stats_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Stats service not available",
        )
    return stats_service


# Type aliases for dependency injection
ProgressServiceDep = Annotated[ProgressService, Depends(get_progress_service)]
StatsServiceDep = Annotated[StatsService, Depends(get_stats_service)]


def handle_progress_error(error: ProgressError) -> HTTPException:
    """Convert progress errors to HTTP exceptions."""
    status_map = {
        "invalid_argument": status.HTTP_400_BAD_REQUEST,
        "invalid_reference": status.HTTP_404_NOT_FOUND,
        "storage_failure": status.HTTP_503_SERVICE_UNAVAILABLE,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(
        status_code=status_code,
        detail=error.message,
    )
