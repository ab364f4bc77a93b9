"""
AI generation service for the credit-gated career tools.

Each generator builds a structured prompt, asks the model for JSON and
validates the keys it needs. Provider errors and malformed output fall back
to a deterministic local generator, so a paid request always gets an answer.
Results say which path produced them through `source`.
"""
import json
import logging
import re
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from resumeforge.core.config import OPENAI_MODEL
from resumeforge.llm.openai_provider import get_llm_provider
from resumeforge.llm.provider import LLMProvider
from resumeforge.schemas.ai import (
    CoverLetterRequest,
    JobTailoringRequest,
    LinkedInOptimizationRequest,
    MockInterviewRequest,
    PersonalBrandRequest,
    ResumeGenerationRequest,
    SalaryResearchRequest,
    SuggestionRequest,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert career coach and professional resume writer. "
    "Respond with a single JSON object and nothing else."
)

STOPWORDS = {
    "a", "an", "and", "are", "as", "at", "be", "by", "for", "from", "has", "have",
    "in", "is", "it", "of", "on", "or", "our", "that", "the", "their", "this", "to",
    "we", "will", "with", "you", "your", "who", "what", "work", "working", "team",
    "role", "job", "experience", "years", "ability", "strong", "including",
}


@dataclass
class GenerationResult:
    feature: str
    source: str  # "openai" or "fallback"
    content: Dict[str, Any]


def _parse_json_response(text: str) -> Optional[Dict[str, Any]]:
    """Parse a JSON object from model output, fenced or bare. None if unparseable."""
    if not text:
        return None
    try:
        fenced = re.search(r'```(?:json)?\s*(\{.*?\})\s*```', text, re.DOTALL)
        if fenced:
            parsed = json.loads(fenced.group(1))
        else:
            start, end = text.find("{"), text.rfind("}")
            if start == -1 or end <= start:
                return None
            parsed = json.loads(text[start:end + 1])
    except (json.JSONDecodeError, AttributeError):
        logger.warning(f"Failed to parse JSON from AI response: {text[:100]}")
        return None
    return parsed if isinstance(parsed, dict) else None


def _looks_like_html(text: str) -> bool:
    return bool(re.search(r"<(p|div|br|h[1-6]|ul|li)\b", text or "", re.IGNORECASE))


def _generate(
    feature: str,
    prompt: str,
    required_keys: Iterable[str],
    fallback: Callable[[], Dict[str, Any]],
    provider: Optional[LLMProvider] = None,
    html_key: Optional[str] = None,
    temperature: float = 0.7,
) -> GenerationResult:
    provider = provider or get_llm_provider()
    if provider is None:
        logger.info(f"No LLM provider configured, using fallback generator for {feature}")
        return GenerationResult(feature, "fallback", fallback())

    try:
        response = provider.complete(SYSTEM_PROMPT, prompt, model=OPENAI_MODEL, temperature=temperature)
    except Exception as e:
        logger.error(f"LLM call failed for {feature}, using fallback: {type(e).__name__}: {e}")
        return GenerationResult(feature, "fallback", fallback())

    parsed = _parse_json_response(response.content)
    if parsed is None and html_key and _looks_like_html(response.content):
        parsed = {html_key: response.content.strip()}

    missing = [key for key in required_keys if key not in (parsed or {})]
    if parsed is None or missing:
        logger.warning(f"Malformed LLM output for {feature} (missing={missing}), using fallback")
        return GenerationResult(feature, "fallback", fallback())

    logger.debug(f"Generated {feature}: tokens={response.total_tokens}, cost_estimate={response.cost_estimate:.5f}")
    return GenerationResult(feature, "openai", parsed)


def extract_keywords(text: str, limit: int = 15) -> List[str]:
    """Most frequent meaningful words of a text, in order of frequency."""
    words = re.findall(r"[A-Za-z][A-Za-z+#.\-]{1,}", (text or "").lower())
    counts = Counter(w.strip(".-") for w in words if w.strip(".-") not in STOPWORDS and len(w) > 2)
    return [word for word, _ in counts.most_common(limit)]


# ============================================
# Resume generation
# ============================================

def generate_resume(request: ResumeGenerationRequest, provider: Optional[LLMProvider] = None) -> GenerationResult:
    prompt = (
        f"Write resume content for a {request.experience_level}-level {request.job_title}.\n"
        f"Skills: {', '.join(request.skills) or 'not provided'}\n"
        f"Current draft (JSON): {json.dumps(request.resume_data)[:4000]}\n\n"
        'Return JSON with keys "summary" (string), "experience_bullets" (list of strings) '
        'and "skills" (list of strings).'
    )

    def fallback() -> Dict[str, Any]:
        skills = request.skills or ["Communication", "Problem Solving", "Collaboration"]
        return {
            "summary": (
                f"Results-driven {request.job_title} with {request.experience_level}-level experience "
                f"delivering measurable impact through {', '.join(skills[:3])}."
            ),
            "experience_bullets": [
                f"Delivered key {request.job_title.lower()} initiatives on schedule, improving team throughput",
                f"Applied {skills[0]} to streamline processes and reduce turnaround time",
                "Partnered with cross-functional stakeholders to define priorities and ship outcomes",
            ],
            "skills": skills,
        }

    return _generate("resume_generation", prompt, ["summary", "experience_bullets", "skills"], fallback, provider)


# ============================================
# Job tailoring
# ============================================

def tailor_resume(request: JobTailoringRequest, provider: Optional[LLMProvider] = None) -> GenerationResult:
    prompt = (
        f"Tailor this resume to the job{f' of {request.job_title}' if request.job_title else ''}.\n\n"
        f"RESUME:\n{request.resume_text[:6000]}\n\nJOB DESCRIPTION:\n{request.job_description[:6000]}\n\n"
        'Return JSON with keys "tailored_summary" (string), "keyword_matches" (list), '
        '"missing_keywords" (list) and "suggestions" (list of strings).'
    )

    def fallback() -> Dict[str, Any]:
        jd_keywords = extract_keywords(request.job_description)
        resume_words = set(extract_keywords(request.resume_text, limit=200))
        matches = [k for k in jd_keywords if k in resume_words]
        missing = [k for k in jd_keywords if k not in resume_words]
        return {
            "tailored_summary": (
                f"Professional with proven strengths in {', '.join(matches[:3]) or 'the core areas of this role'}, "
                f"ready to contribute as {request.job_title or 'a strong addition to the team'}."
            ),
            "keyword_matches": matches,
            "missing_keywords": missing,
            "suggestions": [f"Add concrete evidence of '{k}' to an experience bullet" for k in missing[:5]],
        }

    return _generate("job_tailoring", prompt, ["tailored_summary", "keyword_matches", "missing_keywords"], fallback, provider)


# ============================================
# Cover letter
# ============================================

def generate_cover_letter(request: CoverLetterRequest, provider: Optional[LLMProvider] = None) -> GenerationResult:
    prompt = (
        f"Write a {request.tone} cover letter for the {request.job_title} role at {request.company_name}.\n"
        f"RESUME:\n{request.resume_text[:5000]}\n\nJOB DESCRIPTION:\n{request.job_description[:5000]}\n\n"
        'Return JSON with key "cover_letter" whose value is the letter as simple HTML paragraphs.'
    )

    def fallback() -> Dict[str, Any]:
        highlights = extract_keywords(request.job_description, limit=3)
        focus = ", ".join(highlights) if highlights else "the responsibilities of this role"
        paragraphs = [
            "Dear Hiring Manager,",
            f"I am excited to apply for the {request.job_title} position at {request.company_name}. "
            f"My background aligns closely with {focus}, and I am confident I can contribute from day one.",
            "Throughout my career I have focused on delivering measurable results, collaborating across teams, "
            "and continuously improving how work gets done.",
            f"I would welcome the opportunity to discuss how I can help {request.company_name} reach its goals. "
            "Thank you for your consideration.",
            "Sincerely,",
        ]
        return {"cover_letter": "".join(f"<p>{p}</p>" for p in paragraphs)}

    return _generate("cover_letter", prompt, ["cover_letter"], fallback, provider, html_key="cover_letter")


# ============================================
# LinkedIn optimization
# ============================================

def optimize_linkedin(request: LinkedInOptimizationRequest, provider: Optional[LLMProvider] = None) -> GenerationResult:
    prompt = (
        f"Optimize this LinkedIn profile for a {request.target_role} role.\n"
        f"Headline: {request.headline}\nAbout: {request.about[:3000]}\nSkills: {', '.join(request.skills)}\n\n"
        'Return JSON with keys "headline" (string), "about" (string), "skills" (list) and "tips" (list).'
    )

    def fallback() -> Dict[str, Any]:
        skills = request.skills[:5] or ["Leadership", "Strategy", "Execution"]
        return {
            "headline": f"{request.target_role} | {' | '.join(skills[:3])}",
            "about": (
                f"I help teams succeed as a {request.target_role}, combining {', '.join(skills[:3])} "
                "to turn goals into measurable outcomes."
            ),
            "skills": skills,
            "tips": [
                "Use a professional headshot and a custom banner",
                "Feature two or three recent accomplishments with numbers",
                f"Pin the skills most relevant to {request.target_role} at the top",
            ],
        }

    return _generate("linkedin_optimization", prompt, ["headline", "about", "skills"], fallback, provider)


# ============================================
# Mock interview
# ============================================

BEHAVIORAL_QUESTIONS = [
    "Tell me about a time you handled a difficult stakeholder.",
    "Describe a project you are most proud of and your role in it.",
    "Tell me about a time you failed and what you learned.",
    "How do you prioritize when everything is urgent?",
    "Describe a situation where you had to learn something quickly.",
]

TECHNICAL_QUESTIONS = [
    "Walk me through how you would design a solution for a core problem in this role.",
    "Which tools do you rely on most as a {job_title}, and why?",
    "How do you validate the quality of your work before shipping it?",
    "Describe a technical trade-off you made recently.",
    "How do you stay current with changes in your field?",
]


def generate_mock_interview(request: MockInterviewRequest, provider: Optional[LLMProvider] = None) -> GenerationResult:
    prompt = (
        f"Create {request.question_count} {request.interview_type} interview questions for a "
        f"{request.experience_level}-level {request.job_title}.\n"
        'Return JSON with key "questions": a list of objects with "question", "category" and "tips".'
    )

    def fallback() -> Dict[str, Any]:
        if request.interview_type == "technical":
            pool = [("technical", q) for q in TECHNICAL_QUESTIONS]
        elif request.interview_type == "behavioral":
            pool = [("behavioral", q) for q in BEHAVIORAL_QUESTIONS]
        else:
            pool = [item for pair in zip(
                [("behavioral", q) for q in BEHAVIORAL_QUESTIONS],
                [("technical", q) for q in TECHNICAL_QUESTIONS],
            ) for item in pair]
        questions = []
        for i in range(request.question_count):
            category, question = pool[i % len(pool)]
            questions.append({
                "question": question.format(job_title=request.job_title),
                "category": category,
                "tips": "Use the STAR method: situation, task, action, result." if category == "behavioral"
                else "Explain your reasoning out loud and mention trade-offs.",
            })
        return {"questions": questions}

    return _generate("mock_interview", prompt, ["questions"], fallback, provider)


# ============================================
# Salary research
# ============================================

BASE_SALARY_BY_LEVEL = {
    "entry": 55000,
    "mid": 80000,
    "senior": 115000,
    "executive": 170000,
}

TITLE_MULTIPLIERS = {
    "engineer": 1.25,
    "developer": 1.2,
    "scientist": 1.25,
    "manager": 1.2,
    "director": 1.45,
    "designer": 1.05,
    "analyst": 1.0,
    "marketing": 0.95,
    "sales": 0.95,
}


def estimate_salary_range(job_title: str, experience_level: str) -> Dict[str, int]:
    """Deterministic salary band from experience level and title keywords."""
    base = BASE_SALARY_BY_LEVEL.get(experience_level.lower(), BASE_SALARY_BY_LEVEL["mid"])
    title = job_title.lower()
    multiplier = max([m for k, m in TITLE_MULTIPLIERS.items() if k in title], default=1.0)
    median = int(round(base * multiplier, -3))
    return {
        "low": int(round(median * 0.85, -3)),
        "median": median,
        "high": int(round(median * 1.2, -3)),
    }


def research_salary(request: SalaryResearchRequest, provider: Optional[LLMProvider] = None) -> GenerationResult:
    offer = f"Current offer: {request.current_offer}\n" if request.current_offer else ""
    prompt = (
        f"Estimate the salary range for a {request.experience_level}-level {request.job_title} "
        f"in {request.location}.\n{offer}"
        'Return JSON with keys "range" ({"low", "median", "high"} integers), "currency" '
        'and "negotiation_tips" (list of strings).'
    )

    def fallback() -> Dict[str, Any]:
        salary_range = estimate_salary_range(request.job_title, request.experience_level)
        tips = [
            "Anchor the conversation with market data rather than your current salary",
            "Negotiate the whole package: equity, bonus, PTO and learning budget",
            "Ask for time to consider any offer before accepting",
        ]
        if request.current_offer and request.current_offer < salary_range["median"]:
            tips.insert(0, f"The offer is below the estimated median of {salary_range['median']}; counter toward it")
        return {"range": salary_range, "currency": "USD", "negotiation_tips": tips, "estimated": True}

    return _generate("salary_research", prompt, ["range", "negotiation_tips"], fallback, provider, temperature=0.3)


# ============================================
# Personal brand strategy
# ============================================

def generate_personal_brand_strategy(request: PersonalBrandRequest, provider: Optional[LLMProvider] = None) -> GenerationResult:
    prompt = (
        f"Build a personal brand strategy for a {request.current_role}"
        f"{f' moving toward {request.target_role}' if request.target_role else ''}"
        f"{f' in {request.industry}' if request.industry else ''}.\n"
        f"Strengths: {', '.join(request.strengths) or 'not provided'}\n"
        'Return JSON with keys "positioning_statement" (string), "content_pillars" (list) '
        'and "action_plan" (list of {"week", "action"}).'
    )

    def fallback() -> Dict[str, Any]:
        target = request.target_role or request.current_role
        strengths = request.strengths or ["problem solving", "communication", "execution"]
        return {
            "positioning_statement": (
                f"A {request.current_role} known for {strengths[0]}, building toward {target}"
                f"{f' in {request.industry}' if request.industry else ''}."
            ),
            "content_pillars": [f"Lessons in {s}" for s in strengths[:3]] + [f"Insights on becoming a {target}"],
            "action_plan": [
                {"week": 1, "action": "Update headline and about section to match the positioning statement"},
                {"week": 2, "action": "Publish a post on your strongest content pillar"},
                {"week": 3, "action": f"Reach out to five people already working as {target}"},
                {"week": 4, "action": "Share a case study of a recent win with measurable results"},
            ],
        }

    return _generate("personal_brand_strategy", prompt, ["positioning_statement", "content_pillars", "action_plan"], fallback, provider)


# ============================================
# Field suggestions
# ============================================

def generate_suggestions(request: SuggestionRequest, provider: Optional[LLMProvider] = None) -> GenerationResult:
    prompt = (
        f"Suggest three improved versions of the resume {request.field} below"
        f"{f' for a {request.job_title}' if request.job_title else ''}.\n\n{request.content[:3000]}\n\n"
        'Return JSON with key "suggestions" (list of strings).'
    )

    def fallback() -> Dict[str, Any]:
        role = request.job_title or "professional"
        return {
            "suggestions": [
                f"Lead with a strong action verb and quantify the impact of your work as a {role}",
                "Replace responsibilities with outcomes: what changed because of your work?",
                "Keep each statement to one or two lines and cut filler words",
            ]
        }

    return _generate("ai_suggestions", prompt, ["suggestions"], fallback, provider)
