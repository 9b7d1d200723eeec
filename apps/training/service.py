from decimal import Decimal
from sqlalchemy.exc import IntegrityError
from framework.logging.logger import get_logger
from framework.exceptions.handler import BusinessException, ConflictException, NotFoundException
from .models import Allowance, Participant, ParticipantEnrollment, Training
from .repository import LookupRepository
from .unit_of_work import TrainingUnitOfWork

logger = get_logger("training_service")

# Enrollment fields copied onto a previously withdrawn enrollment when it is reactivated
_ENROLLMENT_FIELDS = (
    "designation_id", "salary_scale_id", "department_id", "facility_id",
    "payroll_date", "study_leave_date", "allowance_stoppage_date",
    "start_date", "end_date", "duration", "needing_travel",
    "departure_date", "arrival_date", "date_bond_signed", "bond_serving_period",
    "sponsor_id", "mode_of_study", "registration_date", "training_status",
    "financial_year", "campus_type",
)


class TrainingService:
    """Participant, training, enrollment, allowance and lookup workflows.

    Uniqueness and dependent-record rules are checked against the
    repositories before anything is staged, so callers get a
    ``BusinessException`` instead of a database integrity error.
    """

    def __init__(self, uow: TrainingUnitOfWork):
        self.uow = uow

    async def _save(self, conflict_message: str) -> int:
        try:
            return await self.uow.save_changes()
        except IntegrityError as e:
            error_msg = str(e.orig) if hasattr(e, "orig") else str(e)
            logger.warning(f"Integrity error: {error_msg}")
            raise ConflictException(conflict_message)

    async def _require(self, repository, entity_id: int, label: str):
        entity = await repository.get_by_id(entity_id)
        if entity is None:
            raise NotFoundException(f"{label} {entity_id} not found")
        return entity

    # --- Participants ---

    async def register_participant(self, participant: Participant) -> Participant:
        if not await self.uow.participants.is_id_number_unique(participant.id_no):
            raise ConflictException(f"A participant with ID number {participant.id_no} already exists")
        await self.uow.participants.add(participant)
        await self._save("Participant ID number already registered")
        logger.info(f"Participant {participant.id} ({participant.id_no}) registered")
        return participant

    async def update_participant(self, participant: Participant) -> Participant:
        if not await self.uow.participants.is_id_number_unique(participant.id_no, exclude_id=participant.id):
            raise ConflictException(f"A participant with ID number {participant.id_no} already exists")
        await self.uow.participants.update(participant)
        await self._save("Participant ID number already registered")
        return participant

    async def delete_participant(self, participant_id: int) -> None:
        """Soft-delete a participant together with their next of kin."""
        participant = await self._require(self.uow.participants, participant_id, "Participant")
        if await self.uow.participant_enrollments.get_by_participant(participant_id):
            raise ConflictException("Participant has active enrollments and cannot be deleted")
        for kin in await self.uow.next_of_kins.get_by_participant(participant_id):
            await self.uow.next_of_kins.delete(kin)
        await self.uow.participants.delete(participant)
        await self.uow.save_changes()
        logger.info(f"Participant {participant_id} deleted")

    # --- Trainings ---

    async def create_training(self, training: Training) -> Training:
        if training.end_date < training.start_date:
            raise BusinessException("Training end date must not be before its start date")
        if training.sponsor_id is not None:
            await self._require(self.uow.sponsors, training.sponsor_id, "Sponsor")
        await self.uow.trainings.add(training)
        await self.uow.save_changes()
        logger.info(f"Training {training.id} created: {training.program} at {training.institution}")
        return training

    async def delete_training(self, training_id: int) -> None:
        """Soft-delete a training together with its budgets and reports.

        Rejected while enrollments, allowances or transfers still reference it.
        """
        training = await self._require(self.uow.trainings, training_id, "Training")
        if (
            await self.uow.participant_enrollments.get_by_training(training_id)
            or await self.uow.allowances.get_allowances_by_training(training_id)
            or await self.uow.training_transfers.get_transfers_by_training(training_id)
        ):
            raise ConflictException(f"Training {training_id} is in use and cannot be deleted")
        for budget in await self.uow.training_budgets.get_by_training(training_id):
            await self.uow.training_budgets.delete(budget)
        for report in await self.uow.training_reports.get_by_training(training_id):
            await self.uow.training_reports.delete(report)
        await self.uow.trainings.delete(training)
        await self.uow.save_changes()
        logger.info(f"Training {training_id} deleted")

    # --- Enrollments ---

    async def enroll_participant(self, enrollment: ParticipantEnrollment) -> ParticipantEnrollment:
        """Enroll a participant in a training; each pair may be enrolled once.

        A previously withdrawn (soft-deleted) enrollment for the same pair is
        reactivated with the new details instead of inserting a second row.
        """
        participant_id = enrollment.participant_id
        training_id = enrollment.training_id
        await self._require(self.uow.participants, participant_id, "Participant")
        await self._require(self.uow.trainings, training_id, "Training")

        enrollments = self.uow.participant_enrollments
        if await enrollments.is_participant_enrolled(participant_id, training_id):
            raise ConflictException(
                "Participant is already enrolled in this training",
                detail={"participant_id": participant_id, "training_id": training_id},
            )

        withdrawn = await enrollments.get_by_participant_and_training(
            participant_id, training_id, include_deleted=True
        )
        if withdrawn is not None:
            for field in _ENROLLMENT_FIELDS:
                setattr(withdrawn, field, getattr(enrollment, field))
            withdrawn.deleted = False
            await enrollments.update(withdrawn)
            enrollment = withdrawn
        else:
            await enrollments.add(enrollment)

        await self._save("Participant is already enrolled in this training")
        logger.info(f"Participant {participant_id} enrolled in training {training_id}")
        return enrollment

    async def withdraw_enrollment(self, enrollment_id: int) -> None:
        enrollment = await self._require(self.uow.participant_enrollments, enrollment_id, "Enrollment")
        await self.uow.participant_enrollments.delete(enrollment)
        await self.uow.save_changes()
        logger.info(f"Enrollment {enrollment_id} withdrawn")

    # --- Allowances ---

    async def record_allowance(self, allowance: Allowance) -> Allowance:
        if allowance.amount < 0:
            raise BusinessException("Allowance amount must not be negative")
        if allowance.end_date < allowance.start_date:
            raise BusinessException("Allowance end date must not be before its start date")
        await self._require(self.uow.participants, allowance.participant_id, "Participant")
        await self._require(self.uow.trainings, allowance.training_id, "Training")
        await self._require(self.uow.allowance_types, allowance.allowance_type_id, "Allowance type")
        await self._require(self.uow.allowance_statuses, allowance.status_id, "Allowance status")
        await self.uow.allowances.add(allowance)
        await self.uow.save_changes()
        logger.info(f"Allowance {allowance.id} of {allowance.amount} recorded for participant {allowance.participant_id}")
        return allowance

    async def get_participant_allowance_total(self, participant_id: int) -> Decimal:
        await self._require(self.uow.participants, participant_id, "Participant")
        return await self.uow.allowances.get_total_allowances_by_participant(participant_id)

    # --- Lookups ---

    async def create_lookup(self, lookups: LookupRepository, entity):
        name = getattr(entity, lookups.name_field)
        label = lookups.model.__name__
        if not await lookups.is_name_unique(name):
            raise ConflictException(f"{label} '{name}' already exists")
        code = getattr(entity, lookups.code_field, None) if lookups.code_field else None
        if code and not await lookups.is_code_unique(code):
            raise ConflictException(f"{label} code '{code}' already exists")
        await lookups.add(entity)
        await self._save(f"{label} '{name}' already exists")
        return entity

    async def rename_lookup(self, lookups: LookupRepository, lookup_id: int, name: str):
        entity = await self._require(lookups, lookup_id, lookups.model.__name__)
        if not await lookups.is_name_unique(name, exclude_id=lookup_id):
            raise ConflictException(f"{lookups.model.__name__} '{name}' already exists")
        setattr(entity, lookups.name_field, name)
        await lookups.update(entity)
        await self._save(f"{lookups.model.__name__} '{name}' already exists")
        return entity

    async def delete_lookup(self, lookups: LookupRepository, lookup_id: int) -> None:
        """Soft-delete a lookup row unless non-deleted records still reference it."""
        label = lookups.model.__name__
        entity = await self._require(lookups, lookup_id, label)
        if await lookups.is_in_use(lookup_id):
            raise ConflictException(f"{label} {lookup_id} is in use and cannot be deleted")
        await lookups.delete(entity)
        await self.uow.save_changes()
        logger.info(f"{label} {lookup_id} deleted")
