from fastapi import APIRouter, status

from app.schemas.my_base_model import CustomBaseModel

router = APIRouter()


class HealthCheck(CustomBaseModel):
    """Response model for the health check"""

    status: str = "oke"


@router.get(
    "/health",
    tags=["Health"],
    response_model=HealthCheck,
    status_code=status.HTTP_200_OK,
)
def get_health() -> HealthCheck:
    """Liveness probe, no authentication and no downstream calls."""
    return HealthCheck(status="oke")
