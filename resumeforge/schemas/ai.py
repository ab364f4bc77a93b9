"""
Pydantic schemas for the AI generation endpoints.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class ResumeGenerationRequest(BaseModel):
    job_title: str = Field(..., min_length=1)
    experience_level: str = Field("mid", description="entry, mid, senior or executive")
    skills: List[str] = Field(default_factory=list)
    resume_data: Dict[str, Any] = Field(default_factory=dict, description="Structured resume draft")


class JobTailoringRequest(BaseModel):
    resume_text: str = Field(..., min_length=1)
    job_description: str = Field(..., min_length=1)
    job_title: Optional[str] = None


class CoverLetterRequest(BaseModel):
    job_title: str = Field(..., min_length=1)
    company_name: str = Field(..., min_length=1)
    resume_text: str = ""
    job_description: str = ""
    tone: str = "professional"


class LinkedInOptimizationRequest(BaseModel):
    headline: str = ""
    about: str = ""
    target_role: str = Field(..., min_length=1)
    skills: List[str] = Field(default_factory=list)


class MockInterviewRequest(BaseModel):
    job_title: str = Field(..., min_length=1)
    experience_level: str = "mid"
    interview_type: str = Field("behavioral", description="behavioral, technical or mixed")
    question_count: int = Field(5, ge=1, le=15)


class SalaryResearchRequest(BaseModel):
    job_title: str = Field(..., min_length=1)
    location: str = "United States"
    experience_level: str = "mid"
    current_offer: Optional[float] = Field(None, ge=0)


class PersonalBrandRequest(BaseModel):
    current_role: str = Field(..., min_length=1)
    target_role: str = ""
    industry: str = ""
    strengths: List[str] = Field(default_factory=list)


class SuggestionRequest(BaseModel):
    field: str = Field(..., min_length=1, description="Resume field, e.g. summary or experience")
    content: str = ""
    job_title: str = ""


class GenerationResponse(BaseModel):
    feature: str
    source: str = Field(..., description="openai or fallback")
    result: Dict[str, Any]
    creditsCharged: int
    subscription: Dict[str, Any]
