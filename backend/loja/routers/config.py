"""Configuration API endpoints"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from loja.models.provider import ProviderId
from loja.services.config_manager import ConfigManager
from loja.services.errors import ProviderError

router = APIRouter()

PROVIDER_SECTIONS = [p.value for p in ProviderId]


class ConfigUpdateRequest(BaseModel):
    """Request to update configuration"""

    provider: ProviderId | None = None
    welcomeNotification: bool | None = None
    workspaceRoot: str | None = None
    logLevel: str | None = None
    gpt: dict | None = None
    claude: dict | None = None
    grok: dict | None = None
    gemini: dict | None = None


class ConfigResponse(BaseModel):
    """Configuration response"""

    provider: str
    welcomeNotification: bool
    workspaceRoot: str | None
    logLevel: str
    gpt: dict
    claude: dict
    grok: dict
    gemini: dict


class ValidateResponse(BaseModel):
    """Validation response"""

    valid: bool
    message: str
    provider: str


def mask_key(key: str) -> str:
    """Mask API keys for display"""
    if not key:
        return ""
    if len(key) <= 8:
        return "*" * len(key)
    return key[:4] + "*" * (len(key) - 8) + key[-4:]


@router.get("", response_model=ConfigResponse)
async def get_config() -> ConfigResponse:
    """Get current configuration"""
    config = ConfigManager.get_instance().get_config()

    sections = {}
    for name in PROVIDER_SECTIONS:
        section = dict(config.get(name, {}))
        section["apiKey"] = mask_key(section.get("apiKey", ""))
        sections[name] = section

    return ConfigResponse(
        provider=config.get("provider", ProviderId.GPT.value),
        welcomeNotification=config.get("welcomeNotification", True),
        workspaceRoot=config.get("workspaceRoot"),
        logLevel=config.get("logLevel", "INFO"),
        **sections,
    )


@router.put("")
async def update_config(request: ConfigUpdateRequest) -> dict[str, Any]:
    """Update configuration"""
    config_manager = ConfigManager.get_instance()
    current_config = config_manager.get_config()

    # Update only provided fields
    if request.provider:
        current_config["provider"] = request.provider.value
    for key in ("welcomeNotification", "workspaceRoot", "logLevel"):
        value = getattr(request, key)
        if value is not None:
            current_config[key] = value
    for name in PROVIDER_SECTIONS:
        section = getattr(request, name)
        if section:
            current_config[name] = {**current_config.get(name, {}), **section}

    try:
        config_manager.save_config(current_config)
    except RuntimeError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return {"status": "success", "message": "Configuration updated"}


@router.post("/validate", response_model=ValidateResponse)
async def validate_config(request: Request) -> ValidateResponse:
    """Validate current configuration by testing the active provider"""
    controller = request.app.state.controller
    provider = controller.config_manager.active_provider()

    try:
        response = await controller.dispatcher.dispatch("Say 'OK' if you can hear me.", [], include_context=False)
    except ProviderError as e:
        return ValidateResponse(valid=False, message=f"Connection failed: {e}", provider=provider)

    if response:
        return ValidateResponse(valid=True, message=f"Successfully connected to {provider}", provider=provider)
    return ValidateResponse(valid=False, message="Received empty response from LLM", provider=provider)
