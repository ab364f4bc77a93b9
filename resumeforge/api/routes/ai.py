"""
Credit-gated AI generation endpoints.

Each route validates its body, charges the feature through the CreditCharge
from require_credits(), then runs the generator. Generators fall back to
local output instead of failing, so a charged request always gets a result.
"""
import logging
from fastapi import APIRouter, Depends

from resumeforge.core.credit_guard import CreditCharge, require_credits
from resumeforge.schemas.ai import (
    CoverLetterRequest,
    GenerationResponse,
    JobTailoringRequest,
    LinkedInOptimizationRequest,
    MockInterviewRequest,
    PersonalBrandRequest,
    ResumeGenerationRequest,
    SalaryResearchRequest,
    SuggestionRequest,
)
from resumeforge.services import generation_service
from resumeforge.services.credit_service import ConsumptionResult
from resumeforge.services.generation_service import GenerationResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["AI"])


def _respond(generated: GenerationResult, result: ConsumptionResult) -> dict:
    logger.info(
        f"AI feature served: feature={generated.feature}, source={generated.source}, "
        f"charged={result.charged}, remaining={result.remaining}"
    )
    return {
        "feature": generated.feature,
        "source": generated.source,
        "result": generated.content,
        "creditsCharged": result.charged,
        "subscription": result.balance.to_subscription_payload(),
    }


@router.post("/resume", response_model=GenerationResponse)
def generate_resume(
    body: ResumeGenerationRequest,
    charge: CreditCharge = Depends(require_credits("resume_generation")),
):
    result = charge()
    return _respond(generation_service.generate_resume(body), result)


@router.post("/tailor-resume", response_model=GenerationResponse)
def tailor_resume(
    body: JobTailoringRequest,
    charge: CreditCharge = Depends(require_credits("job_tailoring")),
):
    result = charge()
    return _respond(generation_service.tailor_resume(body), result)


@router.post("/cover-letter", response_model=GenerationResponse)
def generate_cover_letter(
    body: CoverLetterRequest,
    charge: CreditCharge = Depends(require_credits("cover_letter")),
):
    result = charge()
    return _respond(generation_service.generate_cover_letter(body), result)


@router.post("/linkedin-optimize", response_model=GenerationResponse)
def optimize_linkedin(
    body: LinkedInOptimizationRequest,
    charge: CreditCharge = Depends(require_credits("linkedin_optimization")),
):
    result = charge()
    return _respond(generation_service.optimize_linkedin(body), result)


@router.post("/mock-interview", response_model=GenerationResponse)
def mock_interview(
    body: MockInterviewRequest,
    charge: CreditCharge = Depends(require_credits("mock_interview")),
):
    result = charge()
    return _respond(generation_service.generate_mock_interview(body), result)


@router.post("/salary-research", response_model=GenerationResponse)
def salary_research(
    body: SalaryResearchRequest,
    charge: CreditCharge = Depends(require_credits("salary_research")),
):
    result = charge()
    return _respond(generation_service.research_salary(body), result)


@router.post("/personal-brand", response_model=GenerationResponse)
def personal_brand(
    body: PersonalBrandRequest,
    charge: CreditCharge = Depends(require_credits("personal_brand_strategy")),
):
    result = charge()
    return _respond(generation_service.generate_personal_brand_strategy(body), result)


@router.post("/suggestions", response_model=GenerationResponse)
def suggestions(
    body: SuggestionRequest,
    charge: CreditCharge = Depends(require_credits("ai_suggestions")),
):
    result = charge()
    return _respond(generation_service.generate_suggestions(body), result)
