"""Shared fixtures: a runner wired to in-memory repositories and a fake LLM."""

from __future__ import annotations

import pytest

from governance_interview.execution.assistant import InterviewAssistant
from governance_interview.execution.gate import VaguenessGate
from governance_interview.execution.reports import ReportGenerator
from governance_interview.repositories.governance import InMemoryGovernanceRepository
from governance_interview.repositories.session import InMemorySessionRepository
from governance_interview.schemas.decisions import GovernanceReport, QuickReport
from governance_interview.services.runner import InterviewRunner
from tests.helpers.fakes import FakeClock, FakeLLMProvider
from tests.helpers.interviews import QUARTERLY_REPORT, QUICK_REPORT


@pytest.fixture
def llm() -> FakeLLMProvider:
    """Fake provider with both reports canned; every helper call falls back."""
    provider = FakeLLMProvider()
    provider.respond(QuickReport, QUICK_REPORT)
    provider.respond(GovernanceReport, QUARTERLY_REPORT)
    return provider


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session_repo() -> InMemorySessionRepository:
    return InMemorySessionRepository()


@pytest.fixture
def governance_repo(session_repo: InMemorySessionRepository) -> InMemoryGovernanceRepository:
    return InMemoryGovernanceRepository(session_repo)


@pytest.fixture
def gate(llm: FakeLLMProvider) -> VaguenessGate:
    return VaguenessGate(llm)


@pytest.fixture
def assistant(llm: FakeLLMProvider) -> InterviewAssistant:
    return InterviewAssistant(llm)


@pytest.fixture
def reports(llm: FakeLLMProvider) -> ReportGenerator:
    return ReportGenerator(llm)


@pytest.fixture
def runner(
    session_repo: InMemorySessionRepository,
    governance_repo: InMemoryGovernanceRepository,
    gate: VaguenessGate,
    assistant: InterviewAssistant,
    reports: ReportGenerator,
    clock: FakeClock,
) -> InterviewRunner:
    return InterviewRunner(
        session_repository=session_repo,
        governance_repository=governance_repo,
        gate=gate,
        assistant=assistant,
        reports=reports,
        clock=clock,
    )
