"""Model catalog route."""

from fastapi import APIRouter

from mentormind.config import get_settings
from mentormind.responses import success_response
from mentormind.services.models import list_model_info

router = APIRouter(tags=["models"])


@router.get("/models")
def list_models() -> dict:
    """List selectable models: the `auto` entry first, then configured platform models.

    Returns:
        {"data": [ModelOut, ...]}
    """
    models = list_model_info(get_settings())
    return success_response([m.model_dump(mode="json", exclude_none=True) for m in models])
