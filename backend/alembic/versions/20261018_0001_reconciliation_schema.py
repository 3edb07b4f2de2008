"""reconciliation schema

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 00:00:01
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261018_0001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

_VERSIONED_TABLES = ("work_experience", "education", "skill", "project", "certification")


def _versioned_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("logical_entity_id", sa.String(length=36), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("source", sa.String(length=64), nullable=False, server_default="manual"),
        sa.Column("source_confidence", sa.Float(), nullable=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def _create_versioned_table(name: str, *columns: sa.Column) -> None:
    op.create_table(
        name,
        *_versioned_columns(),
        *columns,
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("logical_entity_id", "version", name=f"uq_{name}_logical_entity_version"),
    )
    op.create_index(f"ix_{name}_logical_entity_id", name, ["logical_entity_id"], unique=False)
    op.create_index(f"ix_{name}_user_id", name, ["user_id"], unique=False)


def upgrade() -> None:
    _create_versioned_table(
        "work_experience",
        sa.Column("company", sa.String(length=255), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("start_date", sa.String(length=32), nullable=True),
        sa.Column("end_date", sa.String(length=32), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
    )
    _create_versioned_table(
        "education",
        sa.Column("institution", sa.String(length=255), nullable=False),
        sa.Column("degree", sa.String(length=255), nullable=False),
        sa.Column("field_of_study", sa.String(length=255), nullable=True),
        sa.Column("start_date", sa.String(length=32), nullable=True),
        sa.Column("end_date", sa.String(length=32), nullable=True),
        sa.Column("gpa", sa.String(length=16), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
    )
    _create_versioned_table(
        "skill",
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("category", sa.String(length=128), nullable=True),
        sa.Column("proficiency_level", sa.String(length=64), nullable=True),
        sa.Column("years_of_experience", sa.Float(), nullable=True),
    )
    _create_versioned_table(
        "project",
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("technologies_used", sa.JSON(), nullable=False),
        sa.Column("start_date", sa.String(length=32), nullable=True),
        sa.Column("end_date", sa.String(length=32), nullable=True),
        sa.Column("project_url", sa.String(length=512), nullable=True),
        sa.Column("repository_url", sa.String(length=512), nullable=True),
    )
    _create_versioned_table(
        "certification",
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("issuing_organization", sa.String(length=255), nullable=False),
        sa.Column("issue_date", sa.String(length=32), nullable=True),
        sa.Column("expiration_date", sa.String(length=32), nullable=True),
        sa.Column("credential_id", sa.String(length=255), nullable=True),
        sa.Column("credential_url", sa.String(length=512), nullable=True),
    )

    op.create_table(
        "resume_versions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("label", sa.String(length=255), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_resume_versions_user_id", "resume_versions", ["user_id"], unique=False)

    op.create_table(
        "parsed_resume_entities",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("resume_version_id", sa.Integer(), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("profile_entity_id", sa.String(length=36), nullable=True),
        sa.Column("field_name", sa.String(length=128), nullable=False),
        sa.Column("raw_value", sa.Text(), nullable=False),
        sa.Column("confidence_score", sa.Float(), nullable=False, server_default=sa.text("0.0")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["resume_version_id"], ["resume_versions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_parsed_resume_entities_resume_version_id",
        "parsed_resume_entities",
        ["resume_version_id"],
        unique=False,
    )

    op.create_table(
        "entry_enrichments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("parsed_entity_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("enrichment_json", sa.JSON(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["parsed_entity_id"], ["parsed_resume_entities.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("parsed_entity_id"),
    )

    op.create_table(
        "resume_diffs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("resume_version_id", sa.Integer(), nullable=False),
        sa.Column("parsed_entity_id", sa.Integer(), nullable=False),
        sa.Column("field_name", sa.String(length=128), nullable=False),
        sa.Column("profile_entity_id", sa.String(length=64), nullable=True),
        sa.Column("profile_entity_type", sa.String(length=64), nullable=True),
        sa.Column("diff_type", sa.String(length=16), nullable=False),
        sa.Column("similarity_score", sa.Float(), nullable=False, server_default=sa.text("0.0")),
        sa.Column("confidence_score", sa.Float(), nullable=False, server_default=sa.text("0.0")),
        sa.Column("justification", sa.Text(), nullable=False),
        sa.Column("requires_review", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("metadata_json", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["resume_version_id"], ["resume_versions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["parsed_entity_id"], ["parsed_resume_entities.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "resume_version_id",
            "parsed_entity_id",
            "field_name",
            name="uq_resume_diffs_version_parsed_field",
        ),
    )
    op.create_index("ix_resume_diffs_resume_version_id", "resume_diffs", ["resume_version_id"], unique=False)
    op.create_index("ix_resume_diffs_parsed_entity_id", "resume_diffs", ["parsed_entity_id"], unique=False)

    op.create_table(
        "user_confirmed_profile",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("field_name", sa.String(length=128), nullable=False),
        sa.Column("confirmed_value", sa.Text(), nullable=False),
        sa.Column("confidence_score", sa.Float(), nullable=False, server_default=sa.text("1.0")),
        sa.Column("source", sa.String(length=64), nullable=False, server_default="manual"),
        sa.Column("last_confirmed_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_id",
            "entity_type",
            "entity_id",
            "field_name",
            name="uq_user_confirmed_profile_key",
        ),
    )
    op.create_index("ix_user_confirmed_profile_user_id", "user_confirmed_profile", ["user_id"], unique=False)

    op.create_table(
        "merge_decisions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("resume_version_id", sa.Integer(), nullable=False),
        sa.Column("parsed_entity_id", sa.Integer(), nullable=False),
        sa.Column("profile_entity_id", sa.String(length=64), nullable=True),
        sa.Column("profile_entity_type", sa.String(length=64), nullable=True),
        sa.Column("field_name", sa.String(length=128), nullable=False),
        sa.Column("decision_type", sa.String(length=16), nullable=False),
        sa.Column("parsed_value", sa.Text(), nullable=False),
        sa.Column("confirmed_value", sa.Text(), nullable=True),
        sa.Column("override_value", sa.Text(), nullable=True),
        sa.Column("justification", sa.Text(), nullable=True),
        sa.Column("confidence_score", sa.Float(), nullable=False, server_default=sa.text("0.0")),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("outcome", sa.String(length=16), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["resume_version_id"], ["resume_versions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["parsed_entity_id"], ["parsed_resume_entities.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "resume_version_id",
            "parsed_entity_id",
            "field_name",
            name="uq_merge_decisions_version_parsed_field",
        ),
    )
    op.create_index("ix_merge_decisions_user_id", "merge_decisions", ["user_id"], unique=False)
    op.create_index("ix_merge_decisions_resume_version_id", "merge_decisions", ["resume_version_id"], unique=False)

    op.create_table(
        "normalized_entities",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("canonical_name", sa.String(length=255), nullable=False),
        sa.Column("aliases_json", sa.JSON(), nullable=False),
        sa.Column("embedding", sa.JSON(), nullable=True),
        sa.Column("confidence_score", sa.Float(), nullable=False, server_default=sa.text("1.0")),
        sa.Column("review_status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("metadata_json", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_normalized_entities_entity_type", "normalized_entities", ["entity_type"], unique=False)
    op.create_index("ix_normalized_entities_canonical_name", "normalized_entities", ["canonical_name"], unique=False)

    op.create_table(
        "resume_entity_links",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("parsed_entity_id", sa.Integer(), nullable=False),
        sa.Column("normalized_entity_id", sa.Integer(), nullable=False),
        sa.Column("match_method", sa.String(length=16), nullable=True),
        sa.Column("match_score", sa.Float(), nullable=True),
        sa.Column("confidence_score", sa.Float(), nullable=False, server_default=sa.text("0.0")),
        sa.Column("review_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.ForeignKeyConstraint(["parsed_entity_id"], ["parsed_resume_entities.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["normalized_entity_id"], ["normalized_entities.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("parsed_entity_id"),
    )
    op.create_index(
        "ix_resume_entity_links_normalized_entity_id",
        "resume_entity_links",
        ["normalized_entity_id"],
        unique=False,
    )

    op.create_table(
        "normalized_entity_merge_audits",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("source_entity_id", sa.Integer(), nullable=False),
        sa.Column("target_entity_id", sa.Integer(), nullable=False),
        sa.Column("actor_user_id", sa.String(length=64), nullable=False),
        sa.Column("source_canonical_name", sa.String(length=255), nullable=False),
        sa.Column("relinked_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("details_json", sa.JSON(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_normalized_entity_merge_audits_target_entity_id",
        "normalized_entity_merge_audits",
        ["target_entity_id"],
        unique=False,
    )

    op.create_table(
        "pipeline_jobs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("resume_version_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("stage", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("details_json", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["resume_version_id"], ["resume_versions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_pipeline_jobs_resume_version_id", "pipeline_jobs", ["resume_version_id"], unique=False)
    op.create_index("ix_pipeline_jobs_user_id", "pipeline_jobs", ["user_id"], unique=False)

    op.create_table(
        "job_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("job_id", sa.Integer(), nullable=False),
        sa.Column("stage", sa.String(length=32), nullable=False),
        sa.Column("level", sa.String(length=8), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("metadata_json", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["job_id"], ["pipeline_jobs.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_job_logs_job_id", "job_logs", ["job_id"], unique=False)

    op.create_table(
        "user_roles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
    )
    op.create_index("ix_user_roles_user_id", "user_roles", ["user_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_user_roles_user_id", table_name="user_roles")
    op.drop_table("user_roles")
    op.drop_index("ix_job_logs_job_id", table_name="job_logs")
    op.drop_table("job_logs")
    op.drop_index("ix_pipeline_jobs_user_id", table_name="pipeline_jobs")
    op.drop_index("ix_pipeline_jobs_resume_version_id", table_name="pipeline_jobs")
    op.drop_table("pipeline_jobs")
    op.drop_index(
        "ix_normalized_entity_merge_audits_target_entity_id",
        table_name="normalized_entity_merge_audits",
    )
    op.drop_table("normalized_entity_merge_audits")
    op.drop_index("ix_resume_entity_links_normalized_entity_id", table_name="resume_entity_links")
    op.drop_table("resume_entity_links")
    op.drop_index("ix_normalized_entities_canonical_name", table_name="normalized_entities")
    op.drop_index("ix_normalized_entities_entity_type", table_name="normalized_entities")
    op.drop_table("normalized_entities")
    op.drop_index("ix_merge_decisions_resume_version_id", table_name="merge_decisions")
    op.drop_index("ix_merge_decisions_user_id", table_name="merge_decisions")
    op.drop_table("merge_decisions")
    op.drop_index("ix_user_confirmed_profile_user_id", table_name="user_confirmed_profile")
    op.drop_table("user_confirmed_profile")
    op.drop_index("ix_resume_diffs_parsed_entity_id", table_name="resume_diffs")
    op.drop_index("ix_resume_diffs_resume_version_id", table_name="resume_diffs")
    op.drop_table("resume_diffs")
    op.drop_table("entry_enrichments")
    op.drop_index("ix_parsed_resume_entities_resume_version_id", table_name="parsed_resume_entities")
    op.drop_table("parsed_resume_entities")
    op.drop_index("ix_resume_versions_user_id", table_name="resume_versions")
    op.drop_table("resume_versions")
    for name in reversed(_VERSIONED_TABLES):
        op.drop_index(f"ix_{name}_user_id", table_name=name)
        op.drop_index(f"ix_{name}_logical_entity_id", table_name=name)
        op.drop_table(name)
