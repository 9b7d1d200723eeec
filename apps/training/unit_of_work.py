from sqlmodel.ext.asyncio.session import AsyncSession
from framework.repository.base import DEFAULT_ACTOR
from framework.repository.unit_of_work import UnitOfWork
from .repository import (
    AllowanceRepository,
    AllowanceStatusRepository,
    AllowanceTypeRepository,
    DepartmentRepository,
    DesignationRepository,
    FacilityRepository,
    NextOfKinRepository,
    ParticipantEnrollmentRepository,
    ParticipantRepository,
    SalaryScaleRepository,
    SponsorRepository,
    TrainingBudgetRepository,
    TrainingReportRepository,
    TrainingRepository,
    TrainingTransferRepository,
)


class TrainingUnitOfWork(UnitOfWork):
    """Every training repository bound to one shared session."""

    def __init__(self, session: AsyncSession = None, actor: str = DEFAULT_ACTOR):
        super().__init__(session, actor)
        self.participants: ParticipantRepository = self.get_repository(ParticipantRepository)
        self.trainings: TrainingRepository = self.get_repository(TrainingRepository)
        self.participant_enrollments: ParticipantEnrollmentRepository = self.get_repository(
            ParticipantEnrollmentRepository
        )
        self.allowances: AllowanceRepository = self.get_repository(AllowanceRepository)
        self.training_transfers: TrainingTransferRepository = self.get_repository(TrainingTransferRepository)
        self.allowance_types: AllowanceTypeRepository = self.get_repository(AllowanceTypeRepository)
        self.allowance_statuses: AllowanceStatusRepository = self.get_repository(AllowanceStatusRepository)
        self.departments: DepartmentRepository = self.get_repository(DepartmentRepository)
        self.facilities: FacilityRepository = self.get_repository(FacilityRepository)
        self.designations: DesignationRepository = self.get_repository(DesignationRepository)
        self.salary_scales: SalaryScaleRepository = self.get_repository(SalaryScaleRepository)
        self.sponsors: SponsorRepository = self.get_repository(SponsorRepository)
        self.next_of_kins: NextOfKinRepository = self.get_repository(NextOfKinRepository)
        self.training_budgets: TrainingBudgetRepository = self.get_repository(TrainingBudgetRepository)
        self.training_reports: TrainingReportRepository = self.get_repository(TrainingReportRepository)
