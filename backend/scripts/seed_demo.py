"""Seed a demo profile and reconcile one resume version against it.

Usage (from repository root):
    python backend/scripts/seed_demo.py

Usage (from backend directory):
    python scripts/seed_demo.py
    # or
    python -m scripts.seed_demo
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from sqlalchemy import delete

# Make `resume_ledger` imports work whether the script is run from repo root or backend/.
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from resume_ledger.models.resume_version import ResumeVersion
from resume_ledger.models.user_confirmed_profile import UserConfirmedProfile
from resume_ledger.models.versioned_entity import ENTITY_MODELS
from resume_ledger.parsing.parser_interface import ResumeParserInterface
from resume_ledger.parsing.types import ParsedField
from resume_ledger.db.session import SessionLocal
from resume_ledger.schemas.merge_decisions import MergeDecisionCreate
from resume_ledger.services.confirmed_profile import upsert_confirmed_value
from resume_ledger.services.reconciliation import (
    register_resume_upload,
    run_diff_stage,
    run_normalize_stage,
    run_parse_stage,
    run_review_stage,
    run_update_stage,
)
from resume_ledger.services.timeline import get_resume_timeline, skip_stage
from resume_ledger.services.versioned_entities import create_entity


DEFAULT_USER_ID = "demo-user-001"


class StaticDemoParser(ResumeParserInterface):
    """Returns fixed fields that exercise every diff classification."""

    def __init__(self, work_id: str, skill_id: str):
        self.work_id = work_id
        self.skill_id = skill_id

    def parse(self, resume_version: ResumeVersion) -> list[ParsedField]:
        return [
            ParsedField("work_experience", "company", "Acme Corp", 0.97, self.work_id),
            ParsedField("work_experience", "title", "Sr. Software Engineer", 0.91, self.work_id),
            ParsedField("work_experience", "end_date", "2025-06", 0.88, self.work_id),
            ParsedField("skill", "name", "Python", 0.99, self.skill_id),
            ParsedField("skill", "category", "Programming Languages", 0.72, self.skill_id),
        ]


def reset_user(db, user_id: str) -> None:
    """Remove existing records for the demo user."""

    db.execute(delete(ResumeVersion).where(ResumeVersion.user_id == user_id))
    db.execute(delete(UserConfirmedProfile).where(UserConfirmedProfile.user_id == user_id))
    for model in ENTITY_MODELS.values():
        db.execute(delete(model).where(model.user_id == user_id))
    db.commit()


def seed_profile(db, user_id: str) -> tuple[str, str]:
    """Create a small confirmed profile and return the work and skill logical ids."""

    work = create_entity(
        db,
        "work_experience",
        user_id,
        {"company": "Acme Corp", "title": "Senior Software Engineer", "start_date": "2021-03", "end_date": "2024-12"},
    )
    skill = create_entity(db, "skill", user_id, {"name": "Python"})
    for field_name in ("company", "title", "end_date"):
        upsert_confirmed_value(
            db,
            user_id=user_id,
            entity_type="work_experience",
            entity_id=work.logical_entity_id,
            field_name=field_name,
            confirmed_value=str(getattr(work, field_name)),
            confidence_score=1.0,
            source="manual",
        )
    upsert_confirmed_value(
        db,
        user_id=user_id,
        entity_type="skill",
        entity_id=skill.logical_entity_id,
        field_name="name",
        confirmed_value="Python",
        confidence_score=1.0,
        source="manual",
    )
    return work.logical_entity_id, skill.logical_entity_id


def parse_args() -> argparse.Namespace:
    """Parse script CLI arguments."""

    parser = argparse.ArgumentParser(description="Seed a demo profile and reconcile one resume version.")
    parser.add_argument(
        "--user-id",
        default=DEFAULT_USER_ID,
        help=f"User ID to seed (default: {DEFAULT_USER_ID})",
    )
    parser.add_argument(
        "--no-reset",
        action="store_true",
        help="Do not delete existing records for the user before seeding.",
    )
    return parser.parse_args()


def main() -> None:
    """Seed demo data, run the pipeline end to end and print a short summary."""

    args = parse_args()
    user_id: str = args.user_id

    with SessionLocal() as db:
        if not args.no_reset:
            reset_user(db, user_id)

        work_id, skill_id = seed_profile(db, user_id)
        version_id = register_resume_upload(db, user_id, "Demo resume", file_name="demo_resume.pdf").id
        run_parse_stage(db, version_id, StaticDemoParser(work_id, skill_id), user_id=user_id)
        analysis = run_diff_stage(db, version_id, user_id=user_id)
        normalization = run_normalize_stage(db, version_id, user_id=user_id)
        skip_stage(db, version_id, "enrich", reason="demo run without LLM enrichment", user_id=user_id)
        decisions = [
            MergeDecisionCreate(parsed_entity_id=diff.parsed_entity_id, decision_type="accept")
            for diff in analysis.diffs
            if diff.requires_review
        ]
        run_review_stage(db, version_id, user_id, decisions)
        applied = run_update_stage(db, version_id, user_id=user_id)
        timeline = get_resume_timeline(db, version_id)

    print("Seed complete")
    print(f"user_id={user_id}")
    print(f"resume_version_id={version_id}")
    print(f"diffs={analysis.summary.model_dump()}")
    print(f"normalization={normalization.summary.model_dump()}")
    print(f"applied={applied.applied} rejected={applied.rejected} errors={applied.errors}")
    print(f"overall_status={timeline.overall_status}")
    print()
    print("Inspect:")
    print(f"  GET /resume-versions/{version_id}/timeline")
    print(f"  GET /resume-versions/{version_id}/diffs")
    print("  GET /confirmed-profile")
    print("  GET /entities/work_experience")


if __name__ == "__main__":
    main()
