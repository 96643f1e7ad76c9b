from fastapi import APIRouter, Depends, HTTPException, Request
from app.api.dependencies.context import get_context
from app.api.schemas import SettingResponse, SettingUpdate, FormulaUpdate, ThresholdsUpdate
from app.core.rate_limit import limiter, SETTINGS_WRITE_LIMIT
from app.domain.services.context import TodoContext

router = APIRouter(prefix="/settings", tags=["Settings"])


def _setting_response(setting) -> SettingResponse:
    return SettingResponse(
        key=setting.key, value=setting.value,
        version=setting.version, updated_at=setting.updated_at,
    )


@router.put("/urgency/formula", response_model=SettingResponse)
@limiter.limit(SETTINGS_WRITE_LIMIT)
def update_urgency_formula(request: Request, data: FormulaUpdate, ctx: TodoContext = Depends(get_context)):
    """
    Replace the urgency formula. Variables: effort, importance, daysLeft.

    Example:
    ```json
    { "formula": "(effort * importance) / max(0.1, daysLeft ** 1.5)" }
    ```
    """
    return _setting_response(ctx.config.update_urgency_formula(data.formula, data.description))


@router.put("/urgency/thresholds", response_model=SettingResponse)
@limiter.limit(SETTINGS_WRITE_LIMIT)
def update_urgency_thresholds(request: Request, data: ThresholdsUpdate, ctx: TodoContext = Depends(get_context)):
    """Replace the high/medium level thresholds."""
    return _setting_response(ctx.config.update_urgency_thresholds(data.high, data.medium))


@router.get("/{key}", response_model=SettingResponse)
def get_setting(key: str, ctx: TodoContext = Depends(get_context)):
    setting = ctx.config.get_record(key)
    if not setting:
        raise HTTPException(status_code=404, detail="Setting not found")
    return _setting_response(setting)


@router.put("/{key}", response_model=SettingResponse)
@limiter.limit(SETTINGS_WRITE_LIMIT)
def update_setting(request: Request, key: str, data: SettingUpdate, ctx: TodoContext = Depends(get_context)):
    """Store a setting value, creating the key on first write."""
    return _setting_response(ctx.config.update_setting(key, data.value))
