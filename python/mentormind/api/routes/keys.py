"""User API key (BYOK) routes.

Routes are transport-only: each calls exactly one service function.

- GET /keys: List the caller's credential (safe fields only, no secrets)
- POST /keys: Store the caller's single credential (overwrites; encrypted at rest)
- DELETE /keys/{key_id}: Revoke (wipe ciphertext, retain fingerprint)
- POST /keys/validate: Check a key against its vendor without storing it
- GET /keys/models: Model ids a provider offers (vendor list with a key, common list without)

All routes require authentication.
"""

from typing import Annotated
from uuid import UUID

import httpx
from fastapi import APIRouter, Depends, Header, Query, Response
from sqlalchemy.orm import Session

from mentormind.api.deps import get_db, get_http_client
from mentormind.auth.context import AuthContext, require_user
from mentormind.responses import success_response
from mentormind.schemas.keys import (
    KeyValidateOut,
    KeyValidateRequest,
    ProviderModelsOut,
    UserApiKeyCreate,
)
from mentormind.services import models as models_service
from mentormind.services import user_keys as user_keys_service
from mentormind.services.llm import validate_provider_key

router = APIRouter(tags=["keys"])


@router.get("/keys")
def list_keys(
    auth: Annotated[AuthContext, Depends(require_user)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """List the caller's API key.

    Empty list is valid if the caller never stored one.

    Returns:
        {"data": [UserApiKeyOut, ...]}
    """
    keys = user_keys_service.list_user_keys(db=db, user_id=auth.user_id)
    return success_response([k.model_dump(mode="json") for k in keys])


@router.post("/keys", status_code=201)
def store_key(
    body: UserApiKeyCreate,
    auth: Annotated[AuthContext, Depends(require_user)],
    db: Annotated[Session, Depends(get_db)],
    response: Response,
) -> dict:
    """Store the caller's credential, replacing any previous one.

    Returns:
        201 Created (first key): {"data": UserApiKeyOut}
        200 OK (overwritten): {"data": UserApiKeyOut}

    Errors:
        E_KEY_PROVIDER_INVALID (400): Unknown provider
        E_KEY_INVALID_FORMAT (400): Key too short or contains whitespace
    """
    key_out, is_created = user_keys_service.store_user_key(
        db=db,
        user_id=auth.user_id,
        provider=body.provider,
        api_key=body.api_key,
        model_id=body.model_id,
        base_url=body.base_url,
    )
    if not is_created:
        response.status_code = 200

    return success_response(key_out.model_dump(mode="json"))


@router.get("/keys/models")
async def list_provider_models(
    provider: Annotated[str, Query(min_length=1, max_length=50)],
    auth: Annotated[AuthContext, Depends(require_user)],
    http_client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
    x_provider_key: Annotated[str | None, Header()] = None,
    base_url: Annotated[str | None, Query(alias="baseUrl", max_length=500)] = None,
) -> dict:
    """List the models a provider offers for the BYOK model picker.

    The candidate key travels in the X-Provider-Key header, never the query
    string. Without it the provider's common models are returned.

    Returns:
        {"data": ProviderModelsOut}

    Errors:
        E_KEY_PROVIDER_INVALID (400): Unknown provider
    """
    models = await models_service.list_byok_models(
        provider, http_client, api_key=x_provider_key, base_url=base_url
    )
    out = ProviderModelsOut(provider=provider.strip().lower(), models=models)
    return success_response(out.model_dump())


@router.delete("/keys/{key_id}", status_code=204)
def revoke_key(
    key_id: UUID,
    auth: Annotated[AuthContext, Depends(require_user)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """Revoke an API key. Idempotent.

    Errors:
        E_KEY_NOT_FOUND (404): Key doesn't exist or isn't the caller's
    """
    user_keys_service.revoke_user_key(db=db, user_id=auth.user_id, key_id=key_id)
    return Response(status_code=204)


@router.post("/keys/validate")
async def validate_key(
    body: KeyValidateRequest,
    auth: Annotated[AuthContext, Depends(require_user)],
    http_client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
) -> dict:
    """Check a key against its vendor. An invalid key is a 200 with valid=false."""
    valid = await validate_provider_key(
        body.provider, body.api_key, http_client, base_url=body.base_url
    )
    return success_response(KeyValidateOut(provider=body.provider, valid=valid).model_dump())
