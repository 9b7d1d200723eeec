"""Specialized training repository test cases."""
import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from apps.training.models import (
    Allowance,
    Department,
    Designation,
    NextOfKin,
    Participant,
    ParticipantEnrollment,
    Sponsor,
    Training,
    TrainingBudget,
    TrainingReport,
    TrainingTransfer,
)
from apps.training.unit_of_work import TrainingUnitOfWork


def utc(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


def make_enrollment(participant: Participant, training: Training, **fields) -> ParticipantEnrollment:
    return ParticipantEnrollment(
        participant_id=participant.id,
        training_id=training.id,
        start_date=training.start_date,
        end_date=training.end_date,
        **fields,
    )


def make_allowance(participant, training, allowance_type, status, amount, start, end) -> Allowance:
    return Allowance(
        participant_id=participant.id,
        training_id=training.id,
        allowance_type_id=allowance_type.id,
        status_id=status.id,
        amount=Decimal(amount),
        start_date=start,
        end_date=end,
    )


class TestParticipantRepository:
    """Test participant queries."""

    @pytest.mark.asyncio
    async def test_search_is_case_insensitive(self, uow: TrainingUnitOfWork, participant: Participant):
        await uow.participants.add(Participant(firstname="Brian", lastname="Kamau", id_no="ID-2002"))
        await uow.save_changes()

        assert [p.id_no for p in await uow.participants.search_participants("OTIE")] == ["ID-1001"]
        assert [p.id_no for p in await uow.participants.search_participants("brian")] == ["ID-2002"]
        assert len(await uow.participants.search_participants("id-")) == 2
        assert await uow.participants.search_participants("zzz") == []

    @pytest.mark.asyncio
    async def test_search_treats_wildcards_literally(self, uow: TrainingUnitOfWork, participant: Participant):
        assert await uow.participants.search_participants("%") == []

    @pytest.mark.asyncio
    async def test_search_excludes_soft_deleted(self, uow: TrainingUnitOfWork, participant: Participant):
        await uow.participants.delete(participant)
        await uow.save_changes()

        assert await uow.participants.search_participants("Amina") == []
        assert await uow.participants.get_active_participants() == []

    @pytest.mark.asyncio
    async def test_get_by_id_number(self, uow: TrainingUnitOfWork, participant: Participant):
        found = await uow.participants.get_by_id_number("ID-1001")
        assert found is not None
        assert found.full_name == "Amina Otieno"
        assert await uow.participants.get_by_id_number("ID-0000") is None

    @pytest.mark.asyncio
    async def test_id_number_uniqueness(self, uow: TrainingUnitOfWork, participant: Participant):
        assert not await uow.participants.is_id_number_unique("ID-1001")
        assert await uow.participants.is_id_number_unique("ID-1001", exclude_id=participant.id)
        assert await uow.participants.is_id_number_unique("ID-9999")

        await uow.participants.delete(participant)
        await uow.save_changes()
        assert not await uow.participants.is_id_number_unique("ID-1001")

    @pytest.mark.asyncio
    async def test_get_with_enrollments_skips_withdrawn(
        self, uow: TrainingUnitOfWork, participant: Participant, training: Training
    ):
        other = Training(
            institution="Makerere University", program="MMed Surgery", country_of_study="Uganda",
            start_date=utc(2024, 1, 1), end_date=utc(2026, 12, 31),
        )
        await uow.trainings.add(other)
        await uow.save_changes()
        kept = await uow.participant_enrollments.add(make_enrollment(participant, training))
        withdrawn = await uow.participant_enrollments.add(make_enrollment(participant, other))
        await uow.save_changes()
        await uow.participant_enrollments.delete(withdrawn)
        await uow.save_changes()

        loaded = await uow.participants.get_with_enrollments(participant.id)

        assert [e.id for e in loaded.enrollments] == [kept.id]
        assert loaded.enrollments[0].training.program == "MSc Public Health"

    @pytest.mark.asyncio
    async def test_participants_by_training_status(
        self, uow: TrainingUnitOfWork, participant: Participant, training: Training
    ):
        await uow.participant_enrollments.add(make_enrollment(participant, training, training_status="Active"))
        await uow.save_changes()

        assert [p.id for p in await uow.participants.get_participants_by_training_status("active")] == [participant.id]
        assert await uow.participants.get_participants_by_training_status("Completed") == []

    @pytest.mark.asyncio
    async def test_next_of_kin_by_participant(self, uow: TrainingUnitOfWork, participant: Participant):
        await uow.next_of_kins.add(NextOfKin(firstname="Joseph", lastname="Otieno", participant_id=participant.id))
        await uow.save_changes()

        kin = await uow.next_of_kins.get_by_participant(participant.id)
        assert [k.full_name for k in kin] == ["Joseph Otieno"]


class TestTrainingRepository:
    """Test training queries."""

    @pytest.fixture
    async def trainings(self, uow: TrainingUnitOfWork, training: Training):
        past = Training(
            institution="University of Cape Town", program="Diploma in Anaesthesia",
            country_of_study="South Africa", start_date=utc(2020, 1, 1), end_date=utc(2021, 1, 1),
            financial_year="2019/2020",
        )
        await uow.trainings.add(past)
        await uow.save_changes()
        return training, past

    @pytest.mark.asyncio
    async def test_by_institution_matches_substring(self, uow: TrainingUnitOfWork, trainings):
        found = await uow.trainings.get_trainings_by_institution("nairobi")
        assert [t.program for t in found] == ["MSc Public Health"]
        assert len(await uow.trainings.get_trainings_by_institution("University")) == 2

    @pytest.mark.asyncio
    async def test_by_country_matches_whole_name(self, uow: TrainingUnitOfWork, trainings):
        assert len(await uow.trainings.get_trainings_by_country("kenya")) == 1
        assert await uow.trainings.get_trainings_by_country("Ken") == []

    @pytest.mark.asyncio
    async def test_by_financial_year(self, uow: TrainingUnitOfWork, trainings):
        found = await uow.trainings.get_trainings_by_financial_year("2019/2020")
        assert [t.institution for t in found] == ["University of Cape Town"]

    @pytest.mark.asyncio
    async def test_search_trainings(self, uow: TrainingUnitOfWork, trainings):
        assert [t.program for t in await uow.trainings.search_trainings("anaesth")] == ["Diploma in Anaesthesia"]
        assert [t.program for t in await uow.trainings.search_trainings("SOUTH")] == ["Diploma in Anaesthesia"]

    @pytest.mark.asyncio
    async def test_active_trainings_have_not_ended(self, uow: TrainingUnitOfWork, trainings):
        current, _ = trainings
        assert [t.id for t in await uow.trainings.get_active_trainings()] == [current.id]
        assert len(await uow.trainings.get_active_trainings(as_of=utc(2020, 6, 1))) == 2

    @pytest.mark.asyncio
    async def test_get_with_participants(self, uow: TrainingUnitOfWork, participant: Participant, training: Training):
        await uow.participant_enrollments.add(make_enrollment(participant, training))
        await uow.save_changes()

        loaded = await uow.trainings.get_with_participants(training.id)
        assert [e.participant.id_no for e in loaded.enrollments] == ["ID-1001"]


class TestEnrollmentRepository:
    """Test enrollment queries."""

    @pytest.mark.asyncio
    async def test_enrollment_lookups(self, uow: TrainingUnitOfWork, participant: Participant, training: Training):
        assert not await uow.participant_enrollments.is_participant_enrolled(participant.id, training.id)

        enrollment = await uow.participant_enrollments.add(make_enrollment(participant, training))
        await uow.save_changes()

        assert await uow.participant_enrollments.is_participant_enrolled(participant.id, training.id)
        by_participant = await uow.participant_enrollments.get_by_participant(participant.id)
        assert [e.id for e in by_participant] == [enrollment.id]
        assert by_participant[0].training.institution == "University of Nairobi"
        by_training = await uow.participant_enrollments.get_by_training(training.id)
        assert by_training[0].participant.firstname == "Amina"
        pair = await uow.participant_enrollments.get_by_participant_and_training(participant.id, training.id)
        assert pair.id == enrollment.id

    @pytest.mark.asyncio
    async def test_withdrawn_enrollment_is_not_enrolled(
        self, uow: TrainingUnitOfWork, participant: Participant, training: Training
    ):
        enrollment = await uow.participant_enrollments.add(make_enrollment(participant, training))
        await uow.save_changes()
        await uow.participant_enrollments.delete(enrollment)
        await uow.save_changes()

        assert not await uow.participant_enrollments.is_participant_enrolled(participant.id, training.id)
        assert await uow.participant_enrollments.get_by_participant_and_training(participant.id, training.id) is None
        assert await uow.participant_enrollments.get_by_participant_and_training(
            participant.id, training.id, include_deleted=True
        ) is not None


class TestAllowanceRepository:
    """Test allowance queries and totals."""

    @pytest.fixture
    async def allowances(self, uow: TrainingUnitOfWork, participant, training, allowance_lookups):
        allowance_type, status = allowance_lookups
        first = make_allowance(participant, training, allowance_type, status, "100.50", utc(2025, 1, 1), utc(2025, 1, 31))
        second = make_allowance(participant, training, allowance_type, status, "50.25", utc(2025, 2, 1), utc(2025, 2, 28))
        cancelled = make_allowance(participant, training, allowance_type, status, "1000.00", utc(2025, 3, 1), utc(2025, 3, 31))
        await uow.allowances.add_range([first, second, cancelled])
        await uow.save_changes()
        await uow.allowances.delete(cancelled)
        await uow.save_changes()
        return first, second

    @pytest.mark.asyncio
    async def test_total_sums_non_deleted_amounts(self, uow: TrainingUnitOfWork, participant, allowances):
        total = await uow.allowances.get_total_allowances_by_participant(participant.id)
        assert isinstance(total, Decimal)
        assert total == Decimal("150.75")

    @pytest.mark.asyncio
    async def test_total_is_zero_without_allowances(self, uow: TrainingUnitOfWork, participant):
        assert await uow.allowances.get_total_allowances_by_participant(participant.id) == Decimal("0")

    @pytest.mark.asyncio
    async def test_related_rows_are_loaded(self, uow: TrainingUnitOfWork, participant, training, allowances, allowance_lookups):
        allowance_type, status = allowance_lookups
        by_participant = await uow.allowances.get_allowances_by_participant(participant.id)
        assert len(by_participant) == 2
        assert by_participant[0].allowance_type.name == "Stipend"
        assert by_participant[0].allowance_status.name == "Approved"
        assert by_participant[0].training.program == "MSc Public Health"
        assert len(await uow.allowances.get_allowances_by_training(training.id)) == 2
        assert len(await uow.allowances.get_allowances_by_type(allowance_type.id)) == 2
        assert len(await uow.allowances.get_allowances_by_status(status.id)) == 2

    @pytest.mark.asyncio
    async def test_date_range_requires_full_containment(self, uow: TrainingUnitOfWork, allowances):
        first, second = allowances
        in_january = await uow.allowances.get_allowances_in_date_range(utc(2025, 1, 1), utc(2025, 1, 31))
        assert [a.id for a in in_january] == [first.id]

        straddling = await uow.allowances.get_allowances_in_date_range(utc(2025, 1, 15), utc(2025, 2, 28))
        assert [a.id for a in straddling] == [second.id]


class TestTransferRepository:
    """Test training transfer queries."""

    @pytest.mark.asyncio
    async def test_transfers(self, uow: TrainingUnitOfWork, participant, training):
        now = datetime.now(timezone.utc)
        ongoing = TrainingTransfer(
            participant_id=participant.id, training_id=training.id,
            start_date=now - timedelta(days=10), end_date=now + timedelta(days=10),
            institution="University of Ghana", country="Ghana",
        )
        finished = TrainingTransfer(
            participant_id=participant.id, training_id=training.id,
            start_date=now - timedelta(days=100), end_date=now - timedelta(days=50),
            institution="University of Lagos", country="Nigeria",
        )
        await uow.training_transfers.add_range([ongoing, finished])
        await uow.save_changes()

        assert len(await uow.training_transfers.get_transfers_by_participant(participant.id)) == 2
        assert len(await uow.training_transfers.get_transfers_by_training(training.id)) == 2
        assert [t.institution for t in await uow.training_transfers.get_transfers_by_country("ghana")] == [
            "University of Ghana"
        ]
        assert [t.id for t in await uow.training_transfers.get_active_transfers()] == [ongoing.id]


class TestLookupRepositories:
    """Test lookup uniqueness, search and dependent-record checks."""

    @pytest.mark.asyncio
    async def test_name_uniqueness_is_case_insensitive(self, uow: TrainingUnitOfWork, allowance_lookups):
        allowance_type, _ = allowance_lookups
        assert not await uow.allowance_types.is_name_unique("stipend")
        assert not await uow.allowance_types.is_name_unique("STIPEND")
        assert await uow.allowance_types.is_name_unique("Stipend", exclude_id=allowance_type.id)
        assert await uow.allowance_types.is_name_unique("Book Allowance")

    @pytest.mark.asyncio
    async def test_get_by_name_and_search(self, uow: TrainingUnitOfWork, allowance_lookups):
        assert (await uow.allowance_types.get_by_name("STIPEND")).description == "Monthly stipend"
        assert [t.name for t in await uow.allowance_types.search("monthly")] == ["Stipend"]
        assert [s.name for s in await uow.allowance_statuses.search("appr")] == ["Approved"]

    @pytest.mark.asyncio
    async def test_has_allowances(self, uow: TrainingUnitOfWork, participant, training, allowance_lookups):
        allowance_type, status = allowance_lookups
        assert not await uow.allowance_types.has_allowances(allowance_type.id)

        await uow.allowances.add(
            make_allowance(participant, training, allowance_type, status, "10", utc(2025, 1, 1), utc(2025, 1, 2))
        )
        await uow.save_changes()

        assert await uow.allowance_types.has_allowances(allowance_type.id)
        assert await uow.allowance_statuses.has_allowances(status.id)

    @pytest.mark.asyncio
    async def test_department_code_and_usage(self, uow: TrainingUnitOfWork, participant, training):
        department = await uow.departments.add(Department(name="Internal Medicine", code="IM"))
        await uow.save_changes()

        assert not await uow.departments.is_code_unique("IM")
        assert await uow.departments.is_code_unique("IM", exclude_id=department.id)
        assert not await uow.departments.is_in_use(department.id)

        await uow.participant_enrollments.add(make_enrollment(participant, training, department_id=department.id))
        await uow.save_changes()

        assert await uow.departments.is_in_use(department.id)

    @pytest.mark.asyncio
    async def test_sponsor_in_use_by_training(self, uow: TrainingUnitOfWork):
        sponsor = await uow.sponsors.add(Sponsor(name="Ministry of Health", type="Government"))
        await uow.save_changes()
        await uow.trainings.add(Training(
            institution="KEMRI", program="Research Fellowship", country_of_study="Kenya",
            start_date=utc(2025, 1, 1), end_date=utc(2025, 12, 31), sponsor_id=sponsor.id,
        ))
        await uow.save_changes()

        assert await uow.sponsors.is_in_use(sponsor.id)
        with pytest.raises(AttributeError):
            await uow.sponsors.is_code_unique("MOH")

    @pytest.mark.asyncio
    async def test_lookup_list_is_ordered_by_name(self, uow: TrainingUnitOfWork):
        await uow.designations.add_range(
            Designation(title=title) for title in ("Registrar", "Consultant", "Medical Officer")
        )
        await uow.save_changes()

        assert [d.title for d in await uow.designations.get_lookup_list()] == [
            "Consultant", "Medical Officer", "Registrar"
        ]


class TestTrainingOwnedRecords:
    """Test budgets and reports owned by a training."""

    @pytest.mark.asyncio
    async def test_budgets_and_reports(self, uow: TrainingUnitOfWork, training):
        await uow.training_budgets.add_range([
            TrainingBudget(training_id=training.id, financial_year="2026/2027",
                           allocated_amount=Decimal("500"), spent_amount=Decimal("120")),
            TrainingBudget(training_id=training.id, financial_year="2025/2026",
                           allocated_amount=Decimal("800"), spent_amount=Decimal("800")),
        ])
        await uow.training_reports.add_range([
            TrainingReport(training_id=training.id, report_title="Inception", report_date=utc(2025, 10, 1)),
            TrainingReport(training_id=training.id, report_title="Midterm", report_date=utc(2026, 4, 1)),
        ])
        await uow.save_changes()

        budgets = await uow.training_budgets.get_by_training(training.id)
        assert [b.financial_year for b in budgets] == ["2025/2026", "2026/2027"]
        assert budgets[1].remaining_amount == Decimal("380")
        reports = await uow.training_reports.get_by_training(training.id)
        assert [r.report_title for r in reports] == ["Midterm", "Inception"]
