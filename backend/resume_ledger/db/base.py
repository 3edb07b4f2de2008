"""SQLAlchemy metadata registry import for Alembic."""

from resume_ledger.models import (
    Certification,
    Education,
    EntryEnrichment,
    JobLog,
    MergeDecision,
    NormalizedEntity,
    NormalizedEntityMergeAudit,
    ParsedResumeEntity,
    PipelineJob,
    Project,
    ResumeDiff,
    ResumeEntityLink,
    ResumeVersion,
    Skill,
    UserConfirmedProfile,
    UserRole,
    WorkExperience,
)
from resume_ledger.models.base import Base

__all__ = [
    "Base",
    "WorkExperience",
    "Education",
    "EntryEnrichment",
    "Skill",
    "Project",
    "Certification",
    "ResumeVersion",
    "ParsedResumeEntity",
    "ResumeDiff",
    "UserConfirmedProfile",
    "MergeDecision",
    "NormalizedEntity",
    "ResumeEntityLink",
    "NormalizedEntityMergeAudit",
    "PipelineJob",
    "JobLog",
    "UserRole",
]
