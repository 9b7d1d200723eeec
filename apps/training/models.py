from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from sqlalchemy import UniqueConstraint
from sqlmodel import Field, Relationship
from framework.models import AuditBase, UTCDateTime, utcnow


def DateField(optional: bool = False, **kwargs):
    """Timezone-aware datetime column."""
    if optional:
        return Field(default=None, sa_type=UTCDateTime, **kwargs)
    return Field(sa_type=UTCDateTime, **kwargs)


# --- Lookups ---

class Department(AuditBase, table=True):
    __tablename__ = "departments"

    name: str = Field(max_length=100, unique=True, index=True)
    code: Optional[str] = Field(default=None, max_length=10, unique=True)
    description: Optional[str] = Field(default=None, max_length=500)

    enrollments: List["ParticipantEnrollment"] = Relationship(back_populates="department")


class Facility(AuditBase, table=True):
    __tablename__ = "facilities"

    name: str = Field(max_length=150, index=True)
    code: Optional[str] = Field(default=None, max_length=10, unique=True)
    location: str = Field(default="", max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)

    enrollments: List["ParticipantEnrollment"] = Relationship(back_populates="facility")


class Designation(AuditBase, table=True):
    __tablename__ = "designations"

    title: str = Field(max_length=100, index=True)
    code: Optional[str] = Field(default=None, max_length=10, unique=True)
    level: str = Field(default="", max_length=50)  # Junior, Senior, Principal
    description: Optional[str] = Field(default=None, max_length=500)

    enrollments: List["ParticipantEnrollment"] = Relationship(back_populates="designation")


class SalaryScale(AuditBase, table=True):
    __tablename__ = "salary_scales"

    scale: str = Field(max_length=20, unique=True, index=True)
    grade: str = Field(default="", max_length=50)
    min_salary: Decimal = Field(default=Decimal("0"), max_digits=18, decimal_places=2)
    max_salary: Decimal = Field(default=Decimal("0"), max_digits=18, decimal_places=2)
    description: Optional[str] = Field(default=None, max_length=500)

    enrollments: List["ParticipantEnrollment"] = Relationship(back_populates="salary_scale")


class Sponsor(AuditBase, table=True):
    __tablename__ = "sponsors"

    name: str = Field(max_length=100, index=True)
    type: str = Field(default="", max_length=20)  # Government, Private, International
    contact_person: str = Field(default="", max_length=100)
    email: str = Field(default="", max_length=100, index=True)
    phone: str = Field(default="", max_length=15)
    description: Optional[str] = Field(default=None, max_length=500)

    trainings: List["Training"] = Relationship(back_populates="sponsor")


class AllowanceType(AuditBase, table=True):
    __tablename__ = "allowance_types"

    name: str = Field(max_length=100, unique=True, index=True)
    description: Optional[str] = Field(default=None, max_length=500)

    allowances: List["Allowance"] = Relationship(back_populates="allowance_type")


class AllowanceStatus(AuditBase, table=True):
    __tablename__ = "allowance_statuses"

    name: str = Field(max_length=50, unique=True, index=True)
    description: Optional[str] = Field(default=None, max_length=500)

    allowances: List["Allowance"] = Relationship(back_populates="allowance_status")


# --- Core entities ---

class Participant(AuditBase, table=True):
    __tablename__ = "participants"

    title: str = Field(default="", max_length=10)
    firstname: str = Field(max_length=100)
    lastname: str = Field(max_length=100)
    middlename: Optional[str] = Field(default=None, max_length=100)
    id_no: str = Field(max_length=20, unique=True, index=True)
    sex: str = Field(default="", max_length=10)
    dob: Optional[datetime] = DateField(optional=True)
    id_type: str = Field(default="", max_length=20)
    phone: str = Field(default="", max_length=15)
    email: str = Field(default="", max_length=100, index=True)

    enrollments: List["ParticipantEnrollment"] = Relationship(back_populates="participant")
    next_of_kins: List["NextOfKin"] = Relationship(back_populates="participant", cascade_delete=True)
    transfers: List["TrainingTransfer"] = Relationship(back_populates="participant")
    allowances: List["Allowance"] = Relationship(back_populates="participant")

    @property
    def full_name(self) -> str:
        return f"{self.firstname} {self.lastname}"


class Training(AuditBase, table=True):
    __tablename__ = "trainings"

    institution: str = Field(max_length=200, index=True)
    program: str = Field(max_length=200, index=True)
    country_of_study: str = Field(max_length=100)
    start_date: datetime = DateField()
    end_date: datetime = DateField()
    duration: int = Field(default=0, description="Duration in months")
    departure_date: Optional[datetime] = DateField(optional=True)
    arrival_date: Optional[datetime] = DateField(optional=True)
    vacation_employment_period: Optional[str] = Field(default=None, max_length=100)
    resumption_date: Optional[datetime] = DateField(optional=True)
    extension_period: Optional[str] = Field(default=None, max_length=100)
    date_bond_signed: Optional[datetime] = DateField(optional=True)
    bond_serving_period: Optional[str] = Field(default=None, max_length=100)
    sponsor_id: Optional[int] = Field(default=None, foreign_key="sponsors.id", ondelete="SET NULL", index=True)
    mode_of_study: str = Field(default="", max_length=50)
    registration_date: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    training_status: str = Field(default="", max_length=50)
    financial_year: str = Field(default="", max_length=20, index=True)
    campus_type: str = Field(default="", max_length=50)

    sponsor: Optional[Sponsor] = Relationship(back_populates="trainings")
    enrollments: List["ParticipantEnrollment"] = Relationship(back_populates="training")
    budgets: List["TrainingBudget"] = Relationship(back_populates="training", cascade_delete=True)
    reports: List["TrainingReport"] = Relationship(back_populates="training", cascade_delete=True)
    transfers: List["TrainingTransfer"] = Relationship(back_populates="training")
    allowances: List["Allowance"] = Relationship(back_populates="training")


class ParticipantEnrollment(AuditBase, table=True):
    """Links one participant to one training; the pair is unique."""
    __tablename__ = "participant_enrollments"
    __table_args__ = (
        UniqueConstraint("participant_id", "training_id", name="uq_participant_enrollments_participant_training"),
    )

    participant_id: int = Field(foreign_key="participants.id", ondelete="RESTRICT", index=True)
    training_id: int = Field(foreign_key="trainings.id", ondelete="RESTRICT", index=True)

    # Employment
    designation_id: Optional[int] = Field(default=None, foreign_key="designations.id", ondelete="SET NULL")
    salary_scale_id: Optional[int] = Field(default=None, foreign_key="salary_scales.id", ondelete="SET NULL")
    department_id: Optional[int] = Field(default=None, foreign_key="departments.id", ondelete="SET NULL")
    facility_id: Optional[int] = Field(default=None, foreign_key="facilities.id", ondelete="SET NULL")
    payroll_date: Optional[datetime] = DateField(optional=True)
    study_leave_date: Optional[datetime] = DateField(optional=True)
    allowance_stoppage_date: Optional[datetime] = DateField(optional=True)

    # Study
    start_date: datetime = DateField()
    end_date: datetime = DateField()
    duration: int = Field(default=0, description="Duration in months")
    needing_travel: bool = Field(default=False)
    departure_date: Optional[datetime] = DateField(optional=True)
    arrival_date: Optional[datetime] = DateField(optional=True)

    # Bond
    date_bond_signed: Optional[datetime] = DateField(optional=True)
    bond_serving_period: Optional[str] = Field(default=None, max_length=50)

    # Others
    sponsor_id: Optional[int] = Field(default=None, foreign_key="sponsors.id", ondelete="SET NULL")
    mode_of_study: str = Field(default="", max_length=50)  # Full-time, Part-time, Distance
    registration_date: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    training_status: str = Field(default="", max_length=50)  # Active, Completed, Withdrawn
    financial_year: str = Field(default="", max_length=20)
    campus_type: str = Field(default="", max_length=50)

    participant: Optional[Participant] = Relationship(back_populates="enrollments")
    training: Optional[Training] = Relationship(back_populates="enrollments")
    designation: Optional[Designation] = Relationship(back_populates="enrollments")
    salary_scale: Optional[SalaryScale] = Relationship(back_populates="enrollments")
    department: Optional[Department] = Relationship(back_populates="enrollments")
    facility: Optional[Facility] = Relationship(back_populates="enrollments")
    sponsor: Optional[Sponsor] = Relationship()


class Allowance(AuditBase, table=True):
    __tablename__ = "allowances"

    amount: Decimal = Field(default=Decimal("0"), max_digits=18, decimal_places=2)
    start_date: datetime = DateField()
    end_date: datetime = DateField()
    comments: Optional[str] = Field(default=None, max_length=1000)

    participant_id: int = Field(foreign_key="participants.id", ondelete="RESTRICT", index=True)
    training_id: int = Field(foreign_key="trainings.id", ondelete="RESTRICT", index=True)
    allowance_type_id: int = Field(foreign_key="allowance_types.id", ondelete="RESTRICT", index=True)
    status_id: int = Field(foreign_key="allowance_statuses.id", ondelete="RESTRICT", index=True)

    participant: Optional[Participant] = Relationship(back_populates="allowances")
    training: Optional[Training] = Relationship(back_populates="allowances")
    allowance_type: Optional[AllowanceType] = Relationship(back_populates="allowances")
    allowance_status: Optional[AllowanceStatus] = Relationship(back_populates="allowances")


# --- Participant and training owned records ---

class NextOfKin(AuditBase, table=True):
    __tablename__ = "next_of_kins"

    firstname: str = Field(max_length=100)
    lastname: str = Field(max_length=100)
    phone: str = Field(default="", max_length=15)
    email: str = Field(default="", max_length=100)
    id_no: str = Field(default="", max_length=20)
    participant_id: int = Field(foreign_key="participants.id", ondelete="CASCADE", index=True)

    participant: Optional[Participant] = Relationship(back_populates="next_of_kins")

    @property
    def full_name(self) -> str:
        return f"{self.firstname} {self.lastname}"


class TrainingTransfer(AuditBase, table=True):
    __tablename__ = "training_transfers"

    participant_id: int = Field(foreign_key="participants.id", ondelete="RESTRICT", index=True)
    training_id: int = Field(foreign_key="trainings.id", ondelete="RESTRICT", index=True)
    start_date: datetime = DateField(index=True)
    end_date: datetime = DateField()
    institution: str = Field(max_length=200)
    country: str = Field(max_length=100)
    transfer_reason: Optional[str] = Field(default=None, max_length=500)
    transfer_status: str = Field(default="", max_length=50)

    participant: Optional[Participant] = Relationship(back_populates="transfers")
    training: Optional[Training] = Relationship(back_populates="transfers")


class TrainingBudget(AuditBase, table=True):
    __tablename__ = "training_budgets"

    allocated_amount: Decimal = Field(default=Decimal("0"), max_digits=18, decimal_places=2)
    spent_amount: Decimal = Field(default=Decimal("0"), max_digits=18, decimal_places=2)
    financial_year: str = Field(default="", max_length=20)
    budget_category: str = Field(default="", max_length=100)
    notes: Optional[str] = Field(default=None, max_length=500)
    training_id: int = Field(foreign_key="trainings.id", ondelete="CASCADE", index=True)

    training: Optional[Training] = Relationship(back_populates="budgets")

    @property
    def remaining_amount(self) -> Decimal:
        return self.allocated_amount - self.spent_amount


class TrainingReport(AuditBase, table=True):
    __tablename__ = "training_reports"

    report_title: str = Field(max_length=200)
    report_type: str = Field(default="", max_length=50)
    report_date: datetime = DateField(index=True)
    report_content: str = Field(default="", max_length=2000)
    file_path: Optional[str] = Field(default=None, max_length=500)
    report_status: str = Field(default="", max_length=50)
    training_id: int = Field(foreign_key="trainings.id", ondelete="CASCADE", index=True)

    training: Optional[Training] = Relationship(back_populates="reports")
