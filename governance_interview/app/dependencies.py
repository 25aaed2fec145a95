"""
Dependency Injection Wiring (Composition Root).

This module acts as the central "container" for the application's services.
It is responsible for:
1. Instantiating the core Singleton services (Repositories, Adapters, Gate).
2. Wiring them together (e.g., injecting the LLM Adapter into the Gate and
   the Report Generator, and everything into the InterviewRunner).
3. Managing the lifecycle of these objects using @lru_cache to ensure
   they are created only once per application process.

Tests swap any of these with `app.dependency_overrides`.
"""


from functools import lru_cache
from fastapi import Depends

from ..config import settings
from ..llm.interface import LLMProvider
from ..llm.adapters.openai_adapter import OpenAIAdapter
from ..repositories.session import SessionRepository, SqlSessionRepository
from ..repositories.governance import GovernanceRepository, SqlGovernanceRepository
from ..execution.assistant import InterviewAssistant
from ..execution.gate import VaguenessGate
from ..execution.reports import ReportGenerator
from ..services.runner import InterviewRunner

# LLM Provider (Singleton)
@lru_cache()
def get_llm_provider() -> LLMProvider:
    return OpenAIAdapter(
        api_key=settings.OPENAI_API_KEY,
        model_name=settings.OPENAI_MODEL
    )

# Session Repository (Singleton)
@lru_cache()
def get_session_repository() -> SessionRepository:
    return SqlSessionRepository()

# Governance Repository (Singleton)
@lru_cache()
def get_governance_repository() -> GovernanceRepository:
    return SqlGovernanceRepository()

# The Vagueness Gate (Singleton)
@lru_cache()
def get_vagueness_gate(
    llm: LLMProvider = Depends(get_llm_provider)
) -> VaguenessGate:
    return VaguenessGate(llm)

# The Interview Assistant (Singleton)
@lru_cache()
def get_interview_assistant(
    llm: LLMProvider = Depends(get_llm_provider)
) -> InterviewAssistant:
    return InterviewAssistant(llm, temperature=settings.LLM_TEMPERATURE)

# The Report Generator (Singleton)
@lru_cache()
def get_report_generator(
    llm: LLMProvider = Depends(get_llm_provider)
) -> ReportGenerator:
    return ReportGenerator(llm, temperature=settings.LLM_TEMPERATURE)

# The Interview Runner (Singleton Service)
# Must be a singleton: it serializes operations per session in-process.
@lru_cache()
def get_interview_runner(
    session_repo: SessionRepository = Depends(get_session_repository),
    governance_repo: GovernanceRepository = Depends(get_governance_repository),
    gate: VaguenessGate = Depends(get_vagueness_gate),
    assistant: InterviewAssistant = Depends(get_interview_assistant),
    reports: ReportGenerator = Depends(get_report_generator)
) -> InterviewRunner:
    """
    Injects all necessary components into the InterviewRunner.
    """
    return InterviewRunner(
        session_repository=session_repo,
        governance_repository=governance_repo,
        gate=gate,
        assistant=assistant,
        reports=reports
    )
