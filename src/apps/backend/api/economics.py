# src/apps/backend/api/economics.py

import math
from dataclasses import asdict

from fastapi import APIRouter, HTTPException

from apps.backend.schemas.requests import CostScenarioRequest, ROIRequest
from nutri_core.economics.cost_effectiveness import (
    CostScenario,
    compare_system_costs,
    simulate_scenarios,
    scenario_table,
    calculate_roi,
)

router = APIRouter()


def _scenario(request: CostScenarioRequest) -> CostScenario:
    return CostScenario(**request.model_dump())


@router.post("/compare")
def compare(request: CostScenarioRequest):
    try:
        return asdict(compare_system_costs(_scenario(request)))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/scenarios")
def scenarios(request: CostScenarioRequest):
    try:
        results = simulate_scenarios(_scenario(request))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "scenarios": [asdict(r) for r in results],
        "summary": scenario_table(results).to_dict(orient="records"),
    }


@router.post("/roi")
def roi(request: ROIRequest):
    try:
        result = calculate_roi(
            request.current_system,
            request.proposed_system,
            _scenario(request.scenario),
            request.implementation_cost,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    payload = asdict(result)
    # JSON has no infinity: "never pays back" is null
    if math.isinf(payload["payback_months"]):
        payload["payback_months"] = None
    return payload
