# src/apps/backend/api/forecasting.py

from dataclasses import asdict

from fastapi import APIRouter, HTTPException

from apps.backend.schemas.requests import PredictionRequest
from nutri_core.forecasting.predictive_modeling import PredictiveInputs, generate_prediction_report

router = APIRouter()


@router.post("/report")
def prediction_report(request: PredictionRequest):
    try:
        inputs = PredictiveInputs(**request.model_dump())
        return asdict(generate_prediction_report(inputs))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
