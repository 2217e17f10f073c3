# src/apps/backend/schemas/requests.py

from datetime import date, datetime
from typing import List, Union

from pydantic import BaseModel, Field

from data_contracts.models import (
    Prescription,
    Formula,
    Module,
    Supply,
    Signatures,
    FormulaComposition,
)


class RequisitionRequest(BaseModel):
    prescriptions: List[Prescription]
    formulas: List[Formula] = Field(default_factory=list)
    modules: List[Module] = Field(default_factory=list)
    supplies: List[Supply] = Field(default_factory=list)

    unit_name: str = "all"
    start_date: Union[datetime, date]
    end_date: Union[datetime, date]
    selected_times: List[str]
    signatures: Signatures = Field(default_factory=Signatures)

    model_config = {
        "json_schema_extra": {
            "example": {
                "unit_name": "ICU",
                "start_date": "2024-01-01",
                "end_date": "2024-01-02",
                "selected_times": ["09:00", "21:00"],
                "prescriptions": [],
            }
        }
    }


class RepositoryRequisitionRequest(BaseModel):
    unit_name: str = "all"
    start_date: Union[datetime, date]
    end_date: Union[datetime, date]
    selected_times: List[str]
    signatures: Signatures = Field(default_factory=Signatures)


class CalculationReportRequest(BaseModel):
    weight: float
    height: float  # cm
    age: float
    gender: str = "male"
    composition: FormulaComposition
    volume: float
    infusion_times: List[str] = Field(default_factory=list)
    cost_per_ml: float
    equipment_per_day: float = 0.0
    labor_per_day: float = 0.0


class BMIRequest(BaseModel):
    weight: float
    height: float  # cm


class CostScenarioRequest(BaseModel):
    days_of_use: int
    prescribed_volume: float
    infused_volume: float
    number_of_patients: int
    system_type: str = "closed"


class ROIRequest(BaseModel):
    current_system: str
    proposed_system: str
    scenario: CostScenarioRequest
    implementation_cost: float


class PredictionRequest(BaseModel):
    diagnosis: str
    age_group: str
    weight: float
    administration_route: str
    length_of_stay: float
    clinical_severity: str
    comorbidity_count: int = 0
