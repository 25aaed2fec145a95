"""Unit tests for session snapshots and durable records."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from governance_interview.domain.enums import (
    BoardRoleType,
    EvidenceStrength,
    EvidenceType,
    PredictionStatus,
    ProblemDirection,
    RecommendedAction,
    TriggerType,
    WorkflowKind,
)
from governance_interview.domain.validation import AllocationBand
from governance_interview.domain.workflows import QuarterlyState, QuickState, SetupState
from governance_interview.state.models import (
    AllocationUpdate,
    BetEvaluation,
    BoardMember,
    BoardResponse,
    DirectionUpdate,
    Evidence,
    HealthTrend,
    NewBet,
    Persona,
    PortfolioHealth,
    Prediction,
    Problem,
    QuestionAnswer,
    Trigger,
    TriggerStatus,
)
from governance_interview.state.sessions import (
    QuarterlySessionData,
    QuickSessionData,
    SessionRecord,
    SetupSessionData,
    decode_session_data,
    new_session_data,
)


DUE = datetime(2026, 4, 5, 9, 0, tzinfo=timezone.utc)


def full_problem() -> Problem:
    return Problem(
        id="p-1",
        name="Payments API uptime",
        what_breaks="Checkout stalls",
        scarcity_signals=["Only two people know it", "Vendor support ends"],
        scarcity_unknown_reason="Not sure yet",
        evidence_ai_cheaper="Copilot writes runbooks",
        evidence_error_cost="$20000 per hour",
        evidence_trust_required="Only I hold the keys",
        direction=ProblemDirection.APPRECIATING,
        direction_rationale="Trust is required",
        time_allocation_percent=40,
    )


def full_member() -> BoardMember:
    persona = Persona(
        name="Maya Chen",
        background="Ran ops at a fintech",
        communication_style="Blunt",
        signature_phrase="Show me the receipt.",
    )
    return BoardMember(
        id="b-1",
        role_type=BoardRoleType.PORTFOLIO_DEFENDER,
        is_growth_role=True,
        is_active=False,
        anchored_problem_index=0,
        anchored_problem_id="p-1",
        anchored_demand="What protects uptime?",
        persona=persona.model_copy(update={"name": "Dana Fox"}),
        original_persona=persona,
    )


def full_trigger() -> Trigger:
    return Trigger(
        id="t-1",
        trigger_type=TriggerType.ANNUAL,
        description="Annual review",
        condition="A year has passed",
        recommended_action=RecommendedAction.REVIEW_HEALTH,
        is_met=True,
        met_details="Due in April",
        due_at=DUE,
    )


def full_prediction() -> Prediction:
    return Prediction(
        id="bet-1",
        prediction="Ledger is live",
        wrong_if="Any merchant on the old ledger",
        status=PredictionStatus.CORRECT,
        source_session_id="s-1",
        evaluation_session_id="s-2",
        created_at=DUE - timedelta(days=90),
        due_at=DUE,
        evaluated_at=DUE,
    )


def full_health() -> PortfolioHealth:
    return PortfolioHealth(
        appreciating_percent=40,
        depreciating_percent=30,
        stable_percent=30,
        risk_statement="30% is depreciating",
        opportunity_statement="Double down on uptime",
    )


class TestSnapshotRoundTrip:
    """Snapshots survive a JSON dump and reload."""

    @pytest.mark.parametrize(
        "record",
        [
            QuestionAnswer(
                question="Q",
                answer="A",
                was_vague=True,
                concrete_example="On March 3",
                skipped=True,
                state="core_board_clarify",
                context_index=2,
                role_type=BoardRoleType.AVOIDANCE,
                persona_name="Maya Chen",
            ),
            QuestionAnswer(question="Q", answer="A", state="q1_role_context"),
            full_problem(),
            Problem(),
            full_member(),
            BoardMember(role_type=BoardRoleType.ACCOUNTABILITY),
            full_prediction(),
            Prediction(prediction="P", wrong_if="W"),
            full_trigger(),
            Trigger(
                trigger_type=TriggerType.ROLE_CHANGE,
                description="Role changed",
                condition="New manager",
                recommended_action=RecommendedAction.FULL_RESETUP,
            ),
            full_health(),
            PortfolioHealth(),
        ],
        ids=lambda record: type(record).__name__,
    )
    def test_record_round_trip(self, record) -> None:
        """Populated and all-defaults records come back equal."""
        assert type(record).model_validate(record.model_dump(mode="json")) == record

    def test_setup_snapshot(self) -> None:
        """Board personas, triggers with due dates and health survive."""
        data = SetupSessionData(
            current_state=SetupState.CREATE_PERSONAS,
            abstraction_mode=True,
            problems=[full_problem(), Problem(name="Renewals", time_allocation_percent=30)],
            current_problem_index=1,
            total_time_allocation=92,
            allocation_band=AllocationBand.WARNING,
            portfolio_health=full_health(),
            board_members=[full_member(), BoardMember(role_type=BoardRoleType.AVOIDANCE)],
            triggers=[full_trigger()],
            created_problem_ids=["p-1"],
            created_board_member_ids=["b-1"],
            created_trigger_ids=["t-1"],
            portfolio_version_id="v-1",
            output_markdown="# Portfolio Setup Complete\n",
        )
        restored = decode_session_data(data.model_dump(mode="json"))
        assert isinstance(restored, SetupSessionData)
        assert restored == data
        assert restored.triggers[0].due_at == DUE
        assert restored.board_members[0].original_persona.name == "Maya Chen"

    def test_quarterly_snapshot(self) -> None:
        """Bet evaluation with evidence, updates and board responses survive."""
        data = QuarterlySessionData(
            current_state=QuarterlyState.CORE_BOARD_CLARIFY,
            prerequisites_passed=True,
            problems=[full_problem()],
            board_members=[full_member()],
            triggers=[full_trigger()],
            previous_health=full_health(),
            evaluable_prediction=full_prediction(),
            growth_roles_active=True,
            showed_recent_warning=True,
            days_since_last_report=10,
            bet_evaluation=BetEvaluation(
                prediction_id="bet-1",
                prediction="Ledger is live",
                wrong_if="Any merchant on the old ledger",
                status=PredictionStatus.WRONG,
                rationale="Two merchants left",
                evidence=[Evidence(description="Launch post", type=EvidenceType.ARTIFACT, context="Blog")],
            ),
            commitments_response="Shipped on March 3",
            direction_updates=[
                DirectionUpdate(
                    problem_id="p-1",
                    problem_name="Payments API uptime",
                    previous_direction=ProblemDirection.APPRECIATING,
                    new_direction=ProblemDirection.DEPRECIATING,
                    rationale="Stripe ships retries",
                )
            ],
            allocation_updates=[
                AllocationUpdate(problem_id="p-1", problem_name="Uptime", previous_percent=40, new_percent=30)
            ],
            total_time_allocation=100,
            allocation_band=AllocationBand.VALID,
            health_trend=HealthTrend.compare(full_health(), PortfolioHealth(stable_percent=100)),
            trigger_statuses=[
                TriggerStatus(
                    trigger_id="t-1",
                    trigger_type=TriggerType.ANNUAL,
                    description="Annual",
                    is_met=True,
                    details="Overdue",
                ),
                TriggerStatus(trigger_type=TriggerType.SCOPE_CHANGE, description="Scope"),
            ],
            new_bet=NewBet(prediction="Risk scoring live", wrong_if="Still manual", duration_days=60),
            core_board_responses=[
                BoardResponse(
                    member_index=0,
                    role_type=BoardRoleType.ACCOUNTABILITY,
                    persona_name="Maya Chen",
                    anchored_problem_id="p-1",
                    anchored_demand="Receipts?",
                    question="Where is the launch post?",
                    response="Linked in the wiki",
                    was_vague=True,
                    concrete_example="Posted March 3",
                )
            ],
            current_board_member_index=1,
            current_board_question="What did you avoid?",
            created_prediction_id="bet-2",
        )
        restored = decode_session_data(data.model_dump(mode="json"))
        assert isinstance(restored, QuarterlySessionData)
        assert restored == data
        assert restored.bet_evaluation.evidence[0].strength == EvidenceStrength.STRONG

    def test_empty_snapshots(self) -> None:
        """Every variant round-trips with its optional fields unset."""
        for kind in WorkflowKind:
            data = new_session_data(kind)
            assert decode_session_data(data.model_dump(mode="json")) == data

    def test_quick_snapshot(self) -> None:
        """Every accumulator comes back as written."""
        data = QuickSessionData(
            current_state=QuickState.Q3_CLARIFY,
            role_context="I lead Payments at Acme",
            problems=[Problem(name="Uptime", direction=ProblemDirection.APPRECIATING)],
            current_direction_sub_question=2,
            vagueness_skip_count=1,
            transcript=[QuestionAnswer(question="Q", answer="A", state="q1_role_context")],
            clarify_prompt="Name a date",
        )
        restored = decode_session_data(data.model_dump(mode="json"))
        assert isinstance(restored, QuickSessionData)
        assert restored == data

    def test_record_round_trip_keeps_variant(self) -> None:
        """The kind discriminator picks the snapshot variant."""
        record = SessionRecord(
            session_id="s-1",
            user_id="u-1",
            kind=WorkflowKind.SETUP,
            data=SetupSessionData(current_state=SetupState.TIME_ALLOCATION),
        )
        restored = SessionRecord.model_validate(record.model_dump(mode="json"))
        assert isinstance(restored.data, SetupSessionData)
        assert restored.data.current_state == SetupState.TIME_ALLOCATION

    def test_new_session_data_per_kind(self) -> None:
        """Each kind starts at its initial state."""
        assert new_session_data(WorkflowKind.QUARTERLY).current_state == QuarterlyState.INITIAL
        assert new_session_data(WorkflowKind.QUICK).workflow_kind == WorkflowKind.QUICK


class TestLenientDecoding:
    """Unknown values degrade instead of failing the whole snapshot."""

    def test_unknown_state_tag_decodes_to_initial(self) -> None:
        """A state removed from the table restarts the machine."""
        payload = QuickSessionData().model_dump(mode="json")
        payload["current_state"] = "q7_retired_question"
        assert decode_session_data(payload).current_state == QuickState.INITIAL

    def test_unknown_enum_values_fall_back(self) -> None:
        """Direction, role and status fall back to their defaults."""
        problem = Problem.model_validate({"name": "Uptime", "direction": "sideways"})
        entry = QuestionAnswer.model_validate({"question": "Q", "answer": "A", "state": "x", "role_type": "chair"})
        prediction = Prediction.model_validate({"prediction": "P", "wrong_if": "W", "status": "pending"})
        evidence = Evidence.model_validate({"description": "D", "type": "rumour"})

        assert problem.direction is None
        assert entry.role_type is None
        assert prediction.status == PredictionStatus.OPEN
        assert evidence.type == EvidenceType.NONE

    def test_unknown_role_and_trigger_values_fall_back(self) -> None:
        """A retired role or trigger kind does not block resuming the snapshot."""
        setup = SetupSessionData(
            board_members=[full_member()],
            triggers=[full_trigger()],
        ).model_dump(mode="json")
        setup["board_members"][0]["role_type"] = "retired_role"
        setup["triggers"][0]["trigger_type"] = "merger"
        setup["triggers"][0]["recommended_action"] = "call_a_friend"

        restored = decode_session_data(setup)
        assert restored.board_members[0].role_type == BoardRoleType.ACCOUNTABILITY
        assert restored.board_members[0].persona.name == "Dana Fox"
        assert restored.triggers[0].trigger_type == TriggerType.ROLE_CHANGE
        assert restored.triggers[0].recommended_action == RecommendedAction.FULL_RESETUP

        quarterly = QuarterlySessionData(
            trigger_statuses=[TriggerStatus(trigger_type=TriggerType.ANNUAL, description="Annual")],
            core_board_responses=[
                BoardResponse(
                    member_index=0,
                    role_type=BoardRoleType.AVOIDANCE,
                    persona_name="Maya Chen",
                    question="Q",
                    response="R",
                )
            ],
        ).model_dump(mode="json")
        quarterly["trigger_statuses"][0]["trigger_type"] = "merger"
        quarterly["core_board_responses"][0]["role_type"] = "chair"

        restored = decode_session_data(quarterly)
        assert restored.trigger_statuses[0].trigger_type == TriggerType.ROLE_CHANGE
        assert restored.core_board_responses[0].role_type == BoardRoleType.ACCOUNTABILITY

    def test_skip_count_clamped(self) -> None:
        """A corrupted skip count never exceeds the budget."""
        payload = QuickSessionData().model_dump(mode="json")
        payload["vagueness_skip_count"] = 7
        data = decode_session_data(payload)
        assert data.vagueness_skip_count == 2
        assert not data.can_skip


class TestPortfolioHealth:
    """Health is summed from allocations per direction."""

    def test_unclassified_counts_as_stable(self) -> None:
        """Problems without a direction land in the stable bucket."""
        health = PortfolioHealth.from_problems(
            [
                Problem(name="A", direction=ProblemDirection.APPRECIATING, time_allocation_percent=40),
                Problem(name="B", direction=ProblemDirection.DEPRECIATING, time_allocation_percent=35),
                Problem(name="C", time_allocation_percent=25),
            ]
        )
        assert (health.appreciating_percent, health.depreciating_percent, health.stable_percent) == (40, 35, 25)

    def test_trend_description(self) -> None:
        """The trend names the change in appreciating share."""
        previous = PortfolioHealth(appreciating_percent=40)
        assert HealthTrend.compare(previous, PortfolioHealth(appreciating_percent=55)).trend_description == (
            "Appreciating share up 15 points"
        )
        assert HealthTrend.compare(previous, PortfolioHealth(appreciating_percent=30)).trend_description == (
            "Appreciating share down 10 points"
        )


class TestPredictions:
    """Bets and their evaluation."""

    def test_open_sets_due_date(self) -> None:
        """Due date is creation plus the duration."""
        now = datetime(2026, 1, 5, 9, 0, 0, tzinfo=timezone.utc)
        prediction = Prediction.open("P", "W", 90, source_session_id="s-1", now=now)
        assert prediction.status == PredictionStatus.OPEN
        assert prediction.due_at == now + timedelta(days=90)
        assert prediction.is_overdue(now + timedelta(days=90))
        assert not prediction.is_overdue(now + timedelta(days=89))

    def test_evaluate_records_session(self) -> None:
        """Evaluation copies the prediction with the new status."""
        now = datetime(2026, 4, 5, tzinfo=timezone.utc)
        prediction = Prediction(id="p-1", prediction="P", wrong_if="W")
        evaluated = prediction.evaluate(PredictionStatus.WRONG, "s-2", now)
        assert evaluated.status == PredictionStatus.WRONG
        assert evaluated.evaluation_session_id == "s-2"
        assert evaluated.evaluated_at == now
        assert prediction.status == PredictionStatus.OPEN

    def test_evaluate_final_status_rejected(self) -> None:
        """Correct and wrong are terminal."""
        prediction = Prediction(prediction="P", wrong_if="W", status=PredictionStatus.CORRECT)
        with pytest.raises(ValueError):
            prediction.evaluate(PredictionStatus.WRONG, "s-2", datetime(2026, 4, 5, tzinfo=timezone.utc))

    def test_evidence_strength_defaults_from_type(self) -> None:
        """An explicit strength wins over the type default."""
        assert Evidence(description="Calendar invite", type=EvidenceType.CALENDAR).strength == EvidenceStrength.MEDIUM
        assert Evidence(description="Note", type=EvidenceType.PROXY, strength="weak").strength == EvidenceStrength.WEAK


class TestRosters:
    """Board rosters keep roster order and skip inactive seats."""

    def test_core_and_growth_rosters(self) -> None:
        """Growth seats only appear in the growth roster."""
        data = QuarterlySessionData(
            board_members=[
                BoardMember(role_type=BoardRoleType.ACCOUNTABILITY),
                BoardMember(role_type=BoardRoleType.AVOIDANCE, is_active=False),
                BoardMember(role_type=BoardRoleType.PORTFOLIO_DEFENDER, is_growth_role=True),
                BoardMember(role_type=BoardRoleType.DEVILS_ADVOCATE),
            ]
        )
        assert data.core_roster == [0, 3]
        assert data.growth_roster == [2]

    def test_persona_name_falls_back_to_role(self) -> None:
        """A seat without a persona is named after its role."""
        assert BoardMember(role_type=BoardRoleType.MARKET_REALITY).persona_name == "Market Reality"
