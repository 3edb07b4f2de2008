"""Append-only versioned profile entity models."""

from sqlalchemy import JSON, Boolean, Float, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from resume_ledger.models.base import Base, IdMixin, TimestampMixin


class VersionedEntityMixin(IdMixin, TimestampMixin):
    """Columns shared by every version row of a logical entity.

    A row is never updated after insert; `(logical_entity_id, version)` is unique so
    two writers cannot both claim the same next version.
    """

    entity_type = ""
    data_fields = ()
    name_fields = ()

    logical_entity_id: Mapped[str] = mapped_column(String(36), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    source: Mapped[str] = mapped_column(String(64), default="manual", nullable=False)
    source_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)

    @declared_attr.directive
    def __table_args__(cls) -> tuple:
        return (
            UniqueConstraint(
                "logical_entity_id",
                "version",
                name=f"uq_{cls.__tablename__}_logical_entity_version",
            ),
            Index(f"ix_{cls.__tablename__}_logical_entity_id", "logical_entity_id"),
        )

    def data(self) -> dict[str, object]:
        """Return the entity-specific field values of this version."""

        return {name: getattr(self, name) for name in self.data_fields}


class WorkExperience(Base, VersionedEntityMixin):
    __tablename__ = "work_experience"
    entity_type = "work_experience"
    data_fields = ("company", "title", "start_date", "end_date", "description")
    name_fields = ("company",)

    company: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    start_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    end_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class Education(Base, VersionedEntityMixin):
    __tablename__ = "education"
    entity_type = "education"
    data_fields = (
        "institution",
        "degree",
        "field_of_study",
        "start_date",
        "end_date",
        "gpa",
        "description",
    )
    name_fields = ("institution",)

    institution: Mapped[str] = mapped_column(String(255), nullable=False)
    degree: Mapped[str] = mapped_column(String(255), nullable=False)
    field_of_study: Mapped[str | None] = mapped_column(String(255), nullable=True)
    start_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    end_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    gpa: Mapped[str | None] = mapped_column(String(16), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class Skill(Base, VersionedEntityMixin):
    __tablename__ = "skill"
    entity_type = "skill"
    data_fields = ("name", "category", "proficiency_level", "years_of_experience")
    name_fields = ("name",)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str | None] = mapped_column(String(128), nullable=True)
    proficiency_level: Mapped[str | None] = mapped_column(String(64), nullable=True)
    years_of_experience: Mapped[float | None] = mapped_column(Float, nullable=True)


class Project(Base, VersionedEntityMixin):
    __tablename__ = "project"
    entity_type = "project"
    data_fields = (
        "name",
        "description",
        "technologies_used",
        "start_date",
        "end_date",
        "project_url",
        "repository_url",
    )
    name_fields = ("name",)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    technologies_used: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    start_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    end_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    project_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    repository_url: Mapped[str | None] = mapped_column(String(512), nullable=True)


class Certification(Base, VersionedEntityMixin):
    __tablename__ = "certification"
    entity_type = "certification"
    data_fields = (
        "name",
        "issuing_organization",
        "issue_date",
        "expiration_date",
        "credential_id",
        "credential_url",
    )
    name_fields = ("name", "issuing_organization")

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    issuing_organization: Mapped[str] = mapped_column(String(255), nullable=False)
    issue_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    expiration_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    credential_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    credential_url: Mapped[str | None] = mapped_column(String(512), nullable=True)


ENTITY_MODELS: dict[str, type[VersionedEntityMixin]] = {
    model.entity_type: model
    for model in (WorkExperience, Education, Skill, Project, Certification)
}

ENTITY_TYPES: tuple[str, ...] = tuple(ENTITY_MODELS)
