# streamchat/llm/api/route.py

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from streamchat.core.dto import BaseResponse, to_http_exception
from streamchat.llm.api.dto import CredentialRequest, SelectModelRequest, SelectProviderRequest, ToggleModelRequest
from streamchat.llm.api.handler import ProviderHandler
from streamchat.llm.exceptions import ChatError
from streamchat.llm.service.router_service import SelectOutcome


def get_provider_handler(request: Request) -> Optional[ProviderHandler]:
    """Dependency to get the provider handler from app.state."""
    return getattr(request.app.state, "provider_handler", None)


def _require(handler: Optional[ProviderHandler]) -> ProviderHandler:
    if not handler:
        raise HTTPException(status_code=503, detail="Provider router not available")
    return handler


provider_router = APIRouter(prefix="/providers", tags=["Providers"])


@provider_router.get("", response_model=BaseResponse)
async def get_providers(handler: Optional[ProviderHandler] = Depends(get_provider_handler)):
    """Providers with availability, catalogs and the current selection."""
    providers_data = await _require(handler).providers()
    return BaseResponse(
        status=True,
        message="Providers fetched successfully",
        data=providers_data.model_dump(),
    )


@provider_router.post("/select", response_model=BaseResponse)
async def select_provider(body: SelectProviderRequest, handler: Optional[ProviderHandler] = Depends(get_provider_handler)):
    try:
        outcome = await _require(handler).select_provider(body.provider_id)
    except ChatError as e:
        raise to_http_exception(e)
    providers_data = await handler.providers()
    return BaseResponse(
        status=outcome == SelectOutcome.SWITCHED,
        message="Provider selected" if outcome == SelectOutcome.SWITCHED else "Provider needs setup",
        data={"outcome": outcome.value, **providers_data.model_dump(include={"selected_provider", "selected_model"})},
    )


@provider_router.post("/model", response_model=BaseResponse)
async def select_model(body: SelectModelRequest, handler: Optional[ProviderHandler] = Depends(get_provider_handler)):
    try:
        await _require(handler).select_model(body.model)
    except ChatError as e:
        raise to_http_exception(e)
    return BaseResponse(status=True, message="Model selected", data={"selected_model": body.model})


@provider_router.post("/{provider_id}/refresh", response_model=BaseResponse)
async def refresh_models(provider_id: str, handler: Optional[ProviderHandler] = Depends(get_provider_handler)):
    try:
        info = await _require(handler).refresh(provider_id)
    except ChatError as e:
        raise to_http_exception(e)
    return BaseResponse(status=True, message="Models refreshed", data=info.model_dump())


@provider_router.post("/{provider_id}/toggle", response_model=BaseResponse)
async def toggle_model(
    provider_id: str,
    body: ToggleModelRequest,
    handler: Optional[ProviderHandler] = Depends(get_provider_handler),
):
    try:
        info = await _require(handler).toggle(provider_id, body)
    except ChatError as e:
        raise to_http_exception(e)
    return BaseResponse(status=True, message="Model preferences updated", data=info.model_dump())


@provider_router.post("/refresh", response_model=BaseResponse)
async def refresh_all_models(handler: Optional[ProviderHandler] = Depends(get_provider_handler)):
    """Re-discover the catalog of every available provider."""
    providers_data = await _require(handler).refresh_all()
    return BaseResponse(status=True, message="Models refreshed", data=providers_data.model_dump())


@provider_router.put("/{provider_id}/credential", response_model=BaseResponse)
async def set_credential(
    provider_id: str,
    body: CredentialRequest,
    handler: Optional[ProviderHandler] = Depends(get_provider_handler),
):
    try:
        info = await _require(handler).set_credential(provider_id, body.api_key)
    except ChatError as e:
        raise to_http_exception(e)
    return BaseResponse(status=True, message="Credential updated", data=info.model_dump())


@provider_router.delete("/{provider_id}/credential", response_model=BaseResponse)
async def delete_credential(provider_id: str, handler: Optional[ProviderHandler] = Depends(get_provider_handler)):
    try:
        info = await _require(handler).delete_credential(provider_id)
    except ChatError as e:
        raise to_http_exception(e)
    return BaseResponse(status=True, message="Credential removed", data=info.model_dump())
