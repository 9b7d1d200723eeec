"""Training module repository implementations."""

from decimal import Decimal
from typing import ClassVar, List, Optional, Sequence, Tuple
from datetime import datetime
from sqlalchemy import or_
from sqlalchemy.orm import selectinload
from sqlmodel import select, func
from framework.models import utcnow
from framework.repository.base import BaseRepository, DEFAULT_ACTOR
from .models import (
    Allowance,
    AllowanceStatus,
    AllowanceType,
    Department,
    Designation,
    Facility,
    NextOfKin,
    Participant,
    ParticipantEnrollment,
    SalaryScale,
    Sponsor,
    Training,
    TrainingBudget,
    TrainingReport,
    TrainingTransfer,
)


def icontains(column, term: str):
    """Case-insensitive substring match; LIKE wildcards in term are escaped."""
    return func.lower(column).contains(term.lower(), autoescape=True)


def iequals(column, value: str):
    return func.lower(column) == value.lower()


class ParticipantRepository(BaseRepository[Participant]):
    """Participant repository."""

    def __init__(self, session, actor: str = DEFAULT_ACTOR):
        super().__init__(session, Participant, actor)

    async def search_participants(self, search_term: str) -> List[Participant]:
        """Match first name, last name or ID number."""
        statement = self._query(
            or_(
                icontains(Participant.firstname, search_term),
                icontains(Participant.lastname, search_term),
                icontains(Participant.id_no, search_term),
            )
        ).order_by(Participant.lastname, Participant.firstname)
        return await self._all(statement)

    async def get_by_id_number(self, id_number: str) -> Optional[Participant]:
        return await self.find_one(id_no=id_number)

    async def get_active_participants(self) -> List[Participant]:
        return await self.get_all()

    async def get_participants_by_training_status(self, status: str) -> List[Participant]:
        """Participants holding at least one active enrollment with the given training status."""
        enrolled = (
            select(ParticipantEnrollment.participant_id)
            .where(
                ParticipantEnrollment.deleted == False,  # noqa: E712
                iequals(ParticipantEnrollment.training_status, status),
            )
        )
        statement = self._query(Participant.id.in_(enrolled)).order_by(Participant.lastname)
        return await self._all(statement)

    async def get_with_enrollments(self, participant_id: int) -> Optional[Participant]:
        """Participant with active enrollments and their trainings loaded."""
        statement = self._query(Participant.id == participant_id).options(
            selectinload(
                Participant.enrollments.and_(ParticipantEnrollment.deleted == False)  # noqa: E712
            ).selectinload(ParticipantEnrollment.training)
        ).execution_options(populate_existing=True)
        return await self._first(statement)

    async def is_id_number_unique(self, id_number: str, exclude_id: Optional[int] = None) -> bool:
        """Soft-deleted rows still hold their ID number in the unique index."""
        criteria = [Participant.id_no == id_number]
        if exclude_id is not None:
            criteria.append(Participant.id != exclude_id)
        return not await self._any(*criteria, include_deleted=True)


class TrainingRepository(BaseRepository[Training]):
    """Training repository."""

    def __init__(self, session, actor: str = DEFAULT_ACTOR):
        super().__init__(session, Training, actor)

    def _base_query(self):
        return super()._base_query().options(selectinload(Training.sponsor))

    async def get_trainings_by_institution(self, institution: str) -> List[Training]:
        statement = self._query(icontains(Training.institution, institution)).order_by(Training.institution)
        return await self._all(statement)

    async def get_trainings_by_country(self, country: str) -> List[Training]:
        statement = self._query(iequals(Training.country_of_study, country)).order_by(Training.start_date)
        return await self._all(statement)

    async def get_trainings_by_financial_year(self, financial_year: str) -> List[Training]:
        statement = self._query(Training.financial_year == financial_year).order_by(Training.start_date)
        return await self._all(statement)

    async def get_with_participants(self, training_id: int) -> Optional[Training]:
        """Training with active enrollments and their participants loaded."""
        statement = self._query(Training.id == training_id).options(
            selectinload(
                Training.enrollments.and_(ParticipantEnrollment.deleted == False)  # noqa: E712
            ).selectinload(ParticipantEnrollment.participant)
        ).execution_options(populate_existing=True)
        return await self._first(statement)

    async def search_trainings(self, search_term: str) -> List[Training]:
        """Match institution, program or country of study."""
        statement = self._query(
            or_(
                icontains(Training.institution, search_term),
                icontains(Training.program, search_term),
                icontains(Training.country_of_study, search_term),
            )
        ).order_by(Training.program)
        return await self._all(statement)

    async def get_active_trainings(self, as_of: Optional[datetime] = None) -> List[Training]:
        """Trainings that have not ended yet."""
        as_of = as_of or utcnow()
        statement = self._query(Training.end_date > as_of).order_by(Training.end_date)
        return await self._all(statement)


class ParticipantEnrollmentRepository(BaseRepository[ParticipantEnrollment]):
    """Enrollment repository; participant and training are always loaded."""

    def __init__(self, session, actor: str = DEFAULT_ACTOR):
        super().__init__(session, ParticipantEnrollment, actor)

    def _base_query(self):
        return super()._base_query().options(
            selectinload(ParticipantEnrollment.participant),
            selectinload(ParticipantEnrollment.training),
        )

    async def get_by_participant(self, participant_id: int) -> List[ParticipantEnrollment]:
        statement = self._query(ParticipantEnrollment.participant_id == participant_id).order_by(
            ParticipantEnrollment.start_date
        )
        return await self._all(statement)

    async def get_by_training(self, training_id: int) -> List[ParticipantEnrollment]:
        statement = self._query(ParticipantEnrollment.training_id == training_id).order_by(
            ParticipantEnrollment.id
        )
        return await self._all(statement)

    async def get_by_participant_and_training(
        self, participant_id: int, training_id: int, include_deleted: bool = False
    ) -> Optional[ParticipantEnrollment]:
        statement = self._query(
            ParticipantEnrollment.participant_id == participant_id,
            ParticipantEnrollment.training_id == training_id,
            include_deleted=include_deleted,
        )
        return await self._first(statement)

    async def is_participant_enrolled(self, participant_id: int, training_id: int) -> bool:
        return await self._any(
            ParticipantEnrollment.participant_id == participant_id,
            ParticipantEnrollment.training_id == training_id,
        )


class AllowanceRepository(BaseRepository[Allowance]):
    """Allowance repository; type, status, participant and training are always loaded."""

    def __init__(self, session, actor: str = DEFAULT_ACTOR):
        super().__init__(session, Allowance, actor)

    def _base_query(self):
        return super()._base_query().options(
            selectinload(Allowance.allowance_type),
            selectinload(Allowance.allowance_status),
            selectinload(Allowance.participant),
            selectinload(Allowance.training),
        )

    async def _ordered(self, *criteria) -> List[Allowance]:
        return await self._all(self._query(*criteria).order_by(Allowance.start_date, Allowance.id))

    async def get_allowances_by_participant(self, participant_id: int) -> List[Allowance]:
        return await self._ordered(Allowance.participant_id == participant_id)

    async def get_allowances_by_training(self, training_id: int) -> List[Allowance]:
        return await self._ordered(Allowance.training_id == training_id)

    async def get_allowances_by_status(self, status_id: int) -> List[Allowance]:
        return await self._ordered(Allowance.status_id == status_id)

    async def get_allowances_by_type(self, type_id: int) -> List[Allowance]:
        return await self._ordered(Allowance.allowance_type_id == type_id)

    async def get_allowances_in_date_range(self, start_date: datetime, end_date: datetime) -> List[Allowance]:
        """Allowances lying entirely within [start_date, end_date]."""
        return await self._ordered(Allowance.start_date >= start_date, Allowance.end_date <= end_date)

    async def get_total_allowances_by_participant(self, participant_id: int) -> Decimal:
        """Sum of non-deleted allowance amounts; zero when there are none."""
        statement = self._active(
            select(func.coalesce(func.sum(Allowance.amount), 0))
        ).where(Allowance.participant_id == participant_id)
        result = await self.session.exec(statement)
        total = result.one()
        return Decimal(str(total or 0))


class TrainingTransferRepository(BaseRepository[TrainingTransfer]):
    """Training transfer repository."""

    def __init__(self, session, actor: str = DEFAULT_ACTOR):
        super().__init__(session, TrainingTransfer, actor)

    def _base_query(self):
        return super()._base_query().options(
            selectinload(TrainingTransfer.participant),
            selectinload(TrainingTransfer.training),
        )

    async def get_transfers_by_participant(self, participant_id: int) -> List[TrainingTransfer]:
        return await self._all(
            self._query(TrainingTransfer.participant_id == participant_id).order_by(TrainingTransfer.start_date)
        )

    async def get_transfers_by_training(self, training_id: int) -> List[TrainingTransfer]:
        return await self._all(
            self._query(TrainingTransfer.training_id == training_id).order_by(TrainingTransfer.start_date)
        )

    async def get_transfers_by_country(self, country: str) -> List[TrainingTransfer]:
        return await self._all(
            self._query(iequals(TrainingTransfer.country, country)).order_by(TrainingTransfer.start_date)
        )

    async def get_active_transfers(self, as_of: Optional[datetime] = None) -> List[TrainingTransfer]:
        """Transfers in progress: started and not yet ended."""
        as_of = as_of or utcnow()
        return await self._all(
            self._query(TrainingTransfer.start_date <= as_of, TrainingTransfer.end_date > as_of)
            .order_by(TrainingTransfer.start_date)
        )


class NextOfKinRepository(BaseRepository[NextOfKin]):
    def __init__(self, session, actor: str = DEFAULT_ACTOR):
        super().__init__(session, NextOfKin, actor)

    async def get_by_participant(self, participant_id: int) -> List[NextOfKin]:
        return await self._all(
            self._query(NextOfKin.participant_id == participant_id).order_by(NextOfKin.lastname)
        )


class TrainingBudgetRepository(BaseRepository[TrainingBudget]):
    def __init__(self, session, actor: str = DEFAULT_ACTOR):
        super().__init__(session, TrainingBudget, actor)

    async def get_by_training(self, training_id: int) -> List[TrainingBudget]:
        return await self._all(
            self._query(TrainingBudget.training_id == training_id).order_by(TrainingBudget.financial_year)
        )


class TrainingReportRepository(BaseRepository[TrainingReport]):
    def __init__(self, session, actor: str = DEFAULT_ACTOR):
        super().__init__(session, TrainingReport, actor)

    async def get_by_training(self, training_id: int) -> List[TrainingReport]:
        return await self._all(
            self._query(TrainingReport.training_id == training_id).order_by(TrainingReport.report_date.desc())
        )


# --- Lookups ---

class LookupRepository(BaseRepository):
    """Shared queries for small reference tables.

    Subclasses set ``model``, the column holding the display name, the
    optional code column, and the foreign keys that reference the lookup
    (used by ``is_in_use`` before a delete is allowed).
    """

    model_class: ClassVar[type]
    name_field: ClassVar[str] = "name"
    code_field: ClassVar[Optional[str]] = "code"
    referenced_by: ClassVar[Sequence[Tuple[type, str]]] = ()

    def __init__(self, session, actor: str = DEFAULT_ACTOR):
        super().__init__(session, self.model_class, actor)

    @property
    def name_column(self):
        return getattr(self.model, self.name_field)

    async def search(self, search_term: str):
        """Case-insensitive match on name, code and description."""
        columns = [self.name_column, self.model.description]
        if self.code_field:
            columns.append(getattr(self.model, self.code_field))
        statement = self._query(
            or_(*(icontains(column, search_term) for column in columns))
        ).order_by(self.name_column)
        return await self._all(statement)

    async def get_by_name(self, name: str):
        return await self._first(self._query(iequals(self.name_column, name)))

    async def get_lookup_list(self):
        """Active rows ordered by name, for dropdowns."""
        return await self._all(self._query().order_by(self.name_column))

    async def is_name_unique(self, name: str, exclude_id: Optional[int] = None) -> bool:
        """Names compare case-insensitively; soft-deleted rows still count."""
        criteria = [iequals(self.name_column, name)]
        if exclude_id is not None:
            criteria.append(self.model.id != exclude_id)
        return not await self._any(*criteria, include_deleted=True)

    async def is_code_unique(self, code: str, exclude_id: Optional[int] = None) -> bool:
        """Codes are unique across all rows, deleted or not."""
        if not self.code_field:
            raise AttributeError(f"{self.model.__name__} has no code column")
        criteria = [getattr(self.model, self.code_field) == code]
        if exclude_id is not None:
            criteria.append(self.model.id != exclude_id)
        return not await self._any(*criteria, include_deleted=True)

    async def is_in_use(self, lookup_id: int) -> bool:
        """True if any non-deleted record references this lookup."""
        for model, fk_field in self.referenced_by:
            statement = (
                select(model.id)
                .where(getattr(model, fk_field) == lookup_id, model.deleted == False)  # noqa: E712
                .limit(1)
            )
            result = await self.session.exec(statement)
            if result.first() is not None:
                return True
        return False


class DepartmentRepository(LookupRepository):
    model_class = Department
    referenced_by = ((ParticipantEnrollment, "department_id"),)


class FacilityRepository(LookupRepository):
    model_class = Facility
    referenced_by = ((ParticipantEnrollment, "facility_id"),)


class DesignationRepository(LookupRepository):
    model_class = Designation
    name_field = "title"
    referenced_by = ((ParticipantEnrollment, "designation_id"),)


class SalaryScaleRepository(LookupRepository):
    model_class = SalaryScale
    name_field = "scale"
    code_field = None
    referenced_by = ((ParticipantEnrollment, "salary_scale_id"),)


class SponsorRepository(LookupRepository):
    model_class = Sponsor
    code_field = None
    referenced_by = ((ParticipantEnrollment, "sponsor_id"), (Training, "sponsor_id"))


class AllowanceTypeRepository(LookupRepository):
    model_class = AllowanceType
    code_field = None
    referenced_by = ((Allowance, "allowance_type_id"),)

    async def has_allowances(self, allowance_type_id: int) -> bool:
        return await self.is_in_use(allowance_type_id)


class AllowanceStatusRepository(LookupRepository):
    model_class = AllowanceStatus
    code_field = None
    referenced_by = ((Allowance, "status_id"),)

    async def has_allowances(self, allowance_status_id: int) -> bool:
        return await self.is_in_use(allowance_status_id)
