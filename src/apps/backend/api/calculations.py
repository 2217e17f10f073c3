# src/apps/backend/api/calculations.py

from dataclasses import asdict

from fastapi import APIRouter, HTTPException

from apps.backend.schemas.requests import CalculationReportRequest, BMIRequest
from nutri_core.calculations.automated_calculations import (
    generate_calculation_report,
    validate_calculations,
    calculate_bmi,
)

router = APIRouter()


@router.post("/report")
def calculation_report(request: CalculationReportRequest):
    try:
        report = generate_calculation_report(
            weight=request.weight,
            height_cm=request.height,
            age=request.age,
            gender=request.gender,
            composition=request.composition,
            volume=request.volume,
            infusion_times=request.infusion_times,
            cost_per_ml=request.cost_per_ml,
            equipment_per_day=request.equipment_per_day,
            labor_per_day=request.labor_per_day,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "report": asdict(report),
        "validation": asdict(validate_calculations(report)),
    }


@router.post("/bmi")
def bmi(request: BMIRequest):
    try:
        return asdict(calculate_bmi(request.weight, request.height))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
