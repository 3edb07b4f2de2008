"""ORM models package exports."""

from resume_ledger.models.entry_enrichment import EntryEnrichment
from resume_ledger.models.merge_decision import MergeDecision
from resume_ledger.models.normalized_entity import NormalizedEntity
from resume_ledger.models.normalized_entity_merge_audit import NormalizedEntityMergeAudit
from resume_ledger.models.parsed_resume_entity import ParsedResumeEntity
from resume_ledger.models.pipeline_job import JobLog, PipelineJob
from resume_ledger.models.resume_diff import ResumeDiff
from resume_ledger.models.resume_entity_link import ResumeEntityLink
from resume_ledger.models.resume_version import ResumeVersion
from resume_ledger.models.user_confirmed_profile import UserConfirmedProfile
from resume_ledger.models.user_role import UserRole
from resume_ledger.models.versioned_entity import (
    ENTITY_MODELS,
    ENTITY_TYPES,
    Certification,
    Education,
    Project,
    Skill,
    VersionedEntityMixin,
    WorkExperience,
)

__all__ = [
    "ENTITY_MODELS",
    "ENTITY_TYPES",
    "VersionedEntityMixin",
    "WorkExperience",
    "Education",
    "Skill",
    "Project",
    "Certification",
    "ResumeVersion",
    "ParsedResumeEntity",
    "EntryEnrichment",
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
