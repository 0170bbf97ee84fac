"""
P&L Tree API Endpoints

Stateless compute endpoints: callers post the blueprint and initiatives they
already hold, and get back the render-ready tree. Nothing is persisted.
"""

from typing import Optional, List, Dict, Any
import logging

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel, Field

from financial_models import Blueprint, Initiative, SignConvention
from blueprint_defaults import create_default_blueprint
from blueprint_sanitizer import BlueprintValidationError, build_month_columns, sanitize_blueprint
from pnl_settings import PnLTreeSettings, DEFAULT_MONTH_COUNT
from pnl_tree_engine import PnLTreeEngine
from pnl_tree_export import monthly_table

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pnl-tree", tags=["P&L Tree"])


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class LineItemPayload(BaseModel):
    id: str
    code: str = ""
    name: str = ""
    indent: Any = 0
    nature: Optional[str] = None
    computation: Optional[str] = None
    months: Dict[str, Any] = Field(default_factory=dict)


class BlueprintPayload(BaseModel):
    lines: List[LineItemPayload] = Field(default_factory=list)
    start_month: Optional[str] = Field(default=None, alias="startMonth")
    month_count: Optional[int] = Field(default=None, alias="monthCount")
    root_line_id: Optional[str] = Field(default=None, alias="rootLineId")

    class Config:
        populate_by_name = True


class FinancialEntryPayload(BaseModel):
    line_code: Optional[str] = Field(default=None, alias="lineCode")
    label: Optional[str] = None
    distribution: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        populate_by_name = True


class StagePayload(BaseModel):
    financials: Dict[str, List[FinancialEntryPayload]] = Field(default_factory=dict)


class InitiativePayload(BaseModel):
    id: str
    name: Optional[str] = None
    active_stage: str = Field(default="", alias="activeStage")
    stages: Dict[str, StagePayload] = Field(default_factory=dict)

    class Config:
        populate_by_name = True


class ComputeTreeRequest(BaseModel):
    blueprint: Optional[BlueprintPayload] = None
    initiatives: List[InitiativePayload] = Field(default_factory=list)
    year: Optional[int] = None
    stage_filter: Optional[List[str]] = Field(default=None, alias="stageFilter")
    sign_convention: Optional[SignConvention] = Field(default=None, alias="signConvention")

    class Config:
        populate_by_name = True

    def to_domain(self):
        blueprint = None
        if self.blueprint is not None:
            blueprint = Blueprint.from_dict(self.blueprint.model_dump(by_alias=True))
        initiatives = [
            Initiative.from_dict(item.model_dump(by_alias=True)) for item in self.initiatives
        ]
        return blueprint, initiatives


def get_engine() -> PnLTreeEngine:
    return PnLTreeEngine(PnLTreeSettings.from_env())


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/compute")
async def compute_tree(
    request: ComputeTreeRequest,
    engine: PnLTreeEngine = Depends(get_engine),
):
    """Tree and layout for one year, or {"available": false, "reason": ...}"""
    blueprint, initiatives = request.to_domain()
    result = engine.compute(
        blueprint,
        initiatives,
        year=request.year,
        stage_filter=request.stage_filter,
        sign_convention=request.sign_convention,
    )
    return result.to_dict()


@router.post("/monthly")
async def compute_monthly(
    request: ComputeTreeRequest,
    engine: PnLTreeEngine = Depends(get_engine),
):
    """Per-line monthly values including initiative deltas"""
    blueprint, initiatives = request.to_domain()
    if blueprint is None:
        return {"available": False, "reason": "no_blueprint"}
    frame = monthly_table(
        blueprint,
        initiatives,
        stage_filter=request.stage_filter,
        convention=request.sign_convention or engine.settings.sign_convention,
    )
    return {
        "available": len(frame.columns) > 0,
        "monthKeys": list(frame.columns),
        "lines": [
            {"id": line_id, "values": {key: float(value) for key, value in row.items()}}
            for line_id, row in frame.iterrows()
        ],
    }


@router.get("/default-blueprint")
async def get_default_blueprint():
    blueprint = create_default_blueprint()
    columns = build_month_columns(blueprint.start_month, blueprint.month_count or DEFAULT_MONTH_COUNT)
    return {
        "blueprint": blueprint.to_dict(),
        "months": [column.to_dict() for column in columns],
    }


@router.post("/sanitize")
async def sanitize(payload: Any = Body(...)):
    try:
        blueprint = sanitize_blueprint(payload)
    except BlueprintValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info(f"Sanitized blueprint with {len(blueprint.lines)} lines")
    return blueprint.to_dict()
