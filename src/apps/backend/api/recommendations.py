# src/apps/backend/api/recommendations.py

import logging
from dataclasses import asdict

from fastapi import APIRouter, HTTPException

from data_contracts.models import PatientProfile
from nutri_agents.recommendation_agent import NutritionRecommendationAgent
from nutri_agents.similar_case_agent import SimilarCaseAgent

logger = logging.getLogger(__name__)

router = APIRouter()

rule_agent = NutritionRecommendationAgent()
case_agent = SimilarCaseAgent()


@router.post("/rule-based")
def rule_based(patient: PatientProfile):
    try:
        return asdict(rule_agent.recommend(patient))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/similar-cases")
def similar_cases(patient: PatientProfile):
    try:
        recommendation = case_agent.recommend(patient)
    except ValueError as e:
        logger.error("similar-case recommendation failed: %s", e)
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "recommendation": asdict(recommendation),
        "feature_importance": case_agent.feature_importance(),
    }
