"""
Tests for the AI generators: model output parsing and local fallbacks.
"""
import pytest

from resumeforge.llm.provider import LLMProvider, LLMResponse
from resumeforge.schemas.ai import (
    CoverLetterRequest,
    JobTailoringRequest,
    MockInterviewRequest,
    SalaryResearchRequest,
)
from resumeforge.services.generation_service import (
    _parse_json_response,
    estimate_salary_range,
    extract_keywords,
    generate_cover_letter,
    generate_mock_interview,
    research_salary,
    tailor_resume,
)


class ScriptedProvider(LLMProvider):
    """Replies with a fixed completion and records the prompts it saw."""

    def __init__(self, content: str):
        self.content = content
        self.messages = []

    def chat(self, messages, model, temperature=0.7, max_tokens=None, **kwargs):
        self.messages.append(messages)
        return LLMResponse(content=self.content, tokens_in=120, tokens_out=80, model=model)


class BrokenProvider(LLMProvider):
    def chat(self, messages, model, temperature=0.7, max_tokens=None, **kwargs):
        raise TimeoutError("upstream timed out")


def test_parse_fenced_json():
    text = 'Here you go:\n```json\n{"suggestions": ["a", "b"]}\n```'
    assert _parse_json_response(text) == {"suggestions": ["a", "b"]}


def test_parse_bare_json_with_chatter():
    assert _parse_json_response('Sure! {"range": {"low": 1}} hope that helps') == {"range": {"low": 1}}


def test_parse_rejects_non_objects():
    assert _parse_json_response("no json here") is None
    assert _parse_json_response("{not: valid}") is None
    assert _parse_json_response("") is None


def test_model_output_used_when_well_formed():
    provider = ScriptedProvider('{"cover_letter": "<p>Hello Acme</p>"}')
    result = generate_cover_letter(
        CoverLetterRequest(job_title="Analyst", company_name="Acme"), provider=provider
    )

    assert result.source == "openai"
    assert result.content["cover_letter"] == "<p>Hello Acme</p>"
    assert "Acme" in provider.messages[0][1]["content"]


def test_cover_letter_accepts_raw_html():
    provider = ScriptedProvider("<p>Dear Hiring Manager,</p><p>I am applying...</p>")
    result = generate_cover_letter(
        CoverLetterRequest(job_title="Analyst", company_name="Acme"), provider=provider
    )

    assert result.source == "openai"
    assert result.content["cover_letter"].startswith("<p>Dear Hiring Manager")


def test_missing_keys_fall_back():
    provider = ScriptedProvider('{"questions_wrong_key": []}')
    result = generate_mock_interview(
        MockInterviewRequest(job_title="QA Engineer", question_count=3), provider=provider
    )

    assert result.source == "fallback"
    assert len(result.content["questions"]) == 3


def test_provider_error_falls_back():
    result = research_salary(
        SalaryResearchRequest(job_title="Software Engineer", experience_level="senior"),
        provider=BrokenProvider(),
    )

    assert result.source == "fallback"
    assert result.content["range"] == estimate_salary_range("Software Engineer", "senior")


def test_salary_fallback_flags_low_offer():
    result = research_salary(
        SalaryResearchRequest(job_title="Data Analyst", current_offer=40000),
        provider=BrokenProvider(),
    )
    assert "below the estimated median" in result.content["negotiation_tips"][0]


def test_salary_range_ordering():
    salary_range = estimate_salary_range("Engineering Director", "executive")
    assert salary_range["low"] < salary_range["median"] < salary_range["high"]


def test_tailoring_fallback_reports_keyword_gaps():
    result = tailor_resume(
        JobTailoringRequest(
            resume_text="Built Python data pipelines on AWS.",
            job_description="Looking for Python, Kubernetes and Kubernetes operators on AWS.",
            job_title="Platform Engineer",
        ),
        provider=BrokenProvider(),
    )

    assert "python" in result.content["keyword_matches"]
    assert "kubernetes" in result.content["missing_keywords"]


@pytest.mark.parametrize("interview_type,category", [("technical", "technical"), ("behavioral", "behavioral")])
def test_mock_interview_fallback_categories(interview_type, category):
    result = generate_mock_interview(
        MockInterviewRequest(job_title="SRE", interview_type=interview_type, question_count=2),
        provider=BrokenProvider(),
    )
    assert {q["category"] for q in result.content["questions"]} == {category}


def test_extract_keywords_skips_stopwords():
    keywords = extract_keywords("The team will work with Python and Python tooling", limit=3)
    assert keywords[0] == "python"
    assert "the" not in keywords
