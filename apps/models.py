"""
Model registration: import every table model here so SQLModel.metadata is complete
before create_schema() runs. Add/remove imports when adding/removing apps.
"""
from apps.identity.models import Role, User, UserRole
from apps.training.models import (
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

__all__ = [
    "Role", "User", "UserRole",
    "Allowance", "AllowanceStatus", "AllowanceType", "Department", "Designation",
    "Facility", "NextOfKin", "Participant", "ParticipantEnrollment", "SalaryScale",
    "Sponsor", "Training", "TrainingBudget", "TrainingReport", "TrainingTransfer",
]
