# src/apps/backend/api/requisition.py

import logging

from fastapi import APIRouter, Depends, HTTPException

from apps.backend import settings
from apps.backend.schemas.requests import RequisitionRequest, RepositoryRequisitionRequest
from data_contracts.models import RequisitionData
from nutri_core.requisition.requisition_generator import RequisitionGenerator, ALL_UNITS, SCHEDULE_TIMES
from repositories.factory import get_prescription_repository, get_catalog_repository

logger = logging.getLogger(__name__)

router = APIRouter()

generator = RequisitionGenerator()


def prescription_repository():
    try:
        return get_prescription_repository(settings.DATA_BACKEND, settings.DATA_DIR)
    except (FileNotFoundError, NotImplementedError, ValueError) as e:
        raise HTTPException(status_code=500, detail=f"Prescription repository unavailable: {e}")


def catalog_repository():
    try:
        return get_catalog_repository(settings.DATA_BACKEND, settings.DATA_DIR)
    except (FileNotFoundError, NotImplementedError, ValueError) as e:
        raise HTTPException(status_code=500, detail=f"Catalog repository unavailable: {e}")


@router.get("/schedule-times")
def schedule_times():
    return {"schedule_times": SCHEDULE_TIMES}


@router.post("/generate", response_model=RequisitionData)
def generate(request: RequisitionRequest):
    try:
        return generator.generate(
            prescriptions=request.prescriptions,
            formulas=request.formulas,
            modules=request.modules,
            supplies=request.supplies,
            unit_name=request.unit_name,
            start_date=request.start_date,
            end_date=request.end_date,
            selected_times=request.selected_times,
            signatures=request.signatures,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/from-repository", response_model=RequisitionData)
def generate_from_repository(
    request: RepositoryRequisitionRequest,
    prescriptions_repo=Depends(prescription_repository),
    catalog_repo=Depends(catalog_repository),
):
    """
    Same as /generate, with prescriptions and catalogs read from the
    configured data backend.
    """
    ward = None if request.unit_name == ALL_UNITS else request.unit_name

    try:
        prescriptions = prescriptions_repo.get_prescriptions(ward=ward, status="active")
        formulas = catalog_repo.get_formulas()
        modules = catalog_repo.get_modules()
        supplies = catalog_repo.get_supplies()
    except (FileNotFoundError, ValueError) as e:
        logger.error("requisition data load failed: %s", e)
        raise HTTPException(status_code=500, detail=f"Data load failed: {e}")

    try:
        return generator.generate(
            prescriptions=prescriptions,
            formulas=formulas,
            modules=modules,
            supplies=supplies,
            unit_name=request.unit_name,
            start_date=request.start_date,
            end_date=request.end_date,
            selected_times=request.selected_times,
            signatures=request.signatures,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
