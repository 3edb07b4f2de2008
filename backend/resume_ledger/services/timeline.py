"""Per-resume pipeline stage tracking.

Stages run in a fixed order. Each attempt at a stage is a `PipelineJob`; a stage's
status is the status of its latest attempt, or `pending` when it was never started.
A stage may start only once its predecessor is completed or skipped. A failed stage
stays failed until someone re-invokes it; nothing here retries automatically.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from time import perf_counter
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from resume_ledger.errors import ValidationError
from resume_ledger.models.pipeline_job import JobLog, PipelineJob
from resume_ledger.schemas.timeline import JobLogRead, ResumeTimelineData, TimelineStage
from resume_ledger.services.resumes import get_resume_version

logger = logging.getLogger(__name__)

T = TypeVar("T")

STAGES: tuple[tuple[str, str], ...] = (
    ("upload", "Resume Upload"),
    ("parse", "Parsing"),
    ("diff", "Diff Analysis"),
    ("normalize", "Entity Normalization"),
    ("enrich", "Enrichment"),
    ("review", "Merge Review"),
    ("update", "Profile Update"),
)
STAGE_NAMES: tuple[str, ...] = tuple(name for name, _ in STAGES)
SATISFIED_STATUSES = ("completed", "skipped")


def stage_status(db: Session, resume_version_id: int, stage: str) -> str:
    latest = _latest_job(db, resume_version_id, _check_stage(stage))
    return latest.status if latest is not None else "pending"


def start_stage(db: Session, resume_version_id: int, stage: str, *, user_id: str | None = None) -> PipelineJob:
    """Open a new attempt for `stage` once its predecessor is satisfied."""

    version = get_resume_version(db, resume_version_id, user_id=user_id)
    _require_predecessor(db, resume_version_id, _check_stage(stage))
    latest = _latest_job(db, resume_version_id, stage)
    if latest is not None and latest.status == "in_progress":
        raise ValidationError(f"Stage '{stage}' is already in progress (job {latest.id})")

    job = PipelineJob(
        resume_version_id=resume_version_id,
        user_id=version.user_id,
        stage=stage,
        status="in_progress",
        started_at=_now(),
        details_json={"attempt": _attempt_count(db, resume_version_id, stage) + 1},
    )
    db.add(job)
    db.flush()
    _add_log(db, job, "info", f"Stage {stage} started")
    db.commit()
    db.refresh(job)
    logger.info("timeline.stage_started resume_version_id=%s stage=%s job_id=%s", resume_version_id, stage, job.id)
    return job


def complete_stage(
    db: Session,
    resume_version_id: int,
    stage: str,
    *,
    details: dict[str, Any] | None = None,
) -> PipelineJob:
    job = _require_in_progress(db, resume_version_id, stage)
    job.status = "completed"
    job.completed_at = _now()
    job.details_json = {**(job.details_json or {}), **(details or {})}
    _add_log(db, job, "info", f"Stage {stage} completed", details or {})
    db.commit()
    db.refresh(job)
    logger.info("timeline.stage_completed resume_version_id=%s stage=%s job_id=%s", resume_version_id, stage, job.id)
    return job


def fail_stage(db: Session, resume_version_id: int, stage: str, error_message: str) -> PipelineJob:
    job = _require_in_progress(db, resume_version_id, stage)
    job.status = "failed"
    job.completed_at = _now()
    job.error_message = error_message
    _add_log(db, job, "error", f"Stage {stage} failed: {error_message}")
    db.commit()
    db.refresh(job)
    logger.warning(
        "timeline.stage_failed resume_version_id=%s stage=%s job_id=%s error=%s",
        resume_version_id,
        stage,
        job.id,
        error_message,
    )
    return job


def skip_stage(
    db: Session,
    resume_version_id: int,
    stage: str,
    *,
    reason: str | None = None,
    user_id: str | None = None,
) -> PipelineJob:
    """Mark a stage skipped; downstream stages treat it as satisfied."""

    version = get_resume_version(db, resume_version_id, user_id=user_id)
    _require_predecessor(db, resume_version_id, _check_stage(stage))
    now = _now()
    job = PipelineJob(
        resume_version_id=resume_version_id,
        user_id=version.user_id,
        stage=stage,
        status="skipped",
        started_at=now,
        completed_at=now,
        details_json={"reason": reason} if reason else {},
    )
    db.add(job)
    db.flush()
    _add_log(db, job, "info", f"Stage {stage} skipped" + (f": {reason}" if reason else ""))
    db.commit()
    db.refresh(job)
    return job


def record_completed_stage(
    db: Session,
    resume_version_id: int,
    stage: str,
    *,
    details: dict[str, Any] | None = None,
) -> PipelineJob:
    """Record a stage that finished outside any tracked run, such as the upload itself."""

    start_stage(db, resume_version_id, stage)
    return complete_stage(db, resume_version_id, stage, details=details)


def log_stage(
    db: Session,
    job: PipelineJob,
    message: str,
    *,
    level: str = "info",
    metadata: dict[str, Any] | None = None,
) -> JobLog:
    entry = _add_log(db, job, level, message, metadata or {})
    db.commit()
    db.refresh(entry)
    return entry


def run_stage(
    db: Session,
    resume_version_id: int,
    stage: str,
    operation: Callable[[PipelineJob], T],
    *,
    user_id: str | None = None,
    details: Callable[[T], dict[str, Any]] | None = None,
) -> T:
    """Run `operation` as one tracked attempt of `stage`.

    The stage completes with `details(result)` when the operation returns, and fails
    with the exception text when it raises; the exception is re-raised.
    """

    started = perf_counter()
    job = start_stage(db, resume_version_id, stage, user_id=user_id)
    try:
        result = operation(job)
    except Exception as exc:
        db.rollback()
        fail_stage(db, resume_version_id, stage, str(exc) or exc.__class__.__name__)
        logger.exception(
            "timeline.stage_run_failed resume_version_id=%s stage=%s elapsed_ms=%.2f",
            resume_version_id,
            stage,
            (perf_counter() - started) * 1000.0,
        )
        raise
    stage_details = details(result) if details is not None else {}
    stage_details["elapsed_ms"] = round((perf_counter() - started) * 1000.0, 2)
    complete_stage(db, resume_version_id, stage, details=stage_details)
    return result


def get_resume_timeline(db: Session, resume_version_id: int, *, user_id: str | None = None) -> ResumeTimelineData:
    """Current status of every stage with its latest attempt's logs."""

    version = get_resume_version(db, resume_version_id, user_id=user_id)
    jobs = list(
        db.scalars(
            select(PipelineJob)
            .where(PipelineJob.resume_version_id == resume_version_id)
            .order_by(PipelineJob.id.asc())
        ).all()
    )
    jobs_by_stage: dict[str, list[PipelineJob]] = {name: [] for name in STAGE_NAMES}
    for job in jobs:
        jobs_by_stage.setdefault(job.stage, []).append(job)

    stages: list[TimelineStage] = []
    for order, (name, label) in enumerate(STAGES):
        attempts = jobs_by_stage[name]
        if not attempts:
            stages.append(TimelineStage(name=name, label=label, order=order, status="pending"))
            continue
        latest = attempts[-1]
        logs = db.scalars(select(JobLog).where(JobLog.job_id == latest.id).order_by(JobLog.id.asc())).all()
        stages.append(
            TimelineStage(
                name=name,
                label=label,
                order=order,
                status=latest.status,
                started_at=latest.started_at,
                completed_at=latest.completed_at,
                duration_ms=_duration_ms(latest.started_at, latest.completed_at),
                error_message=latest.error_message,
                attempts=len(attempts),
                logs=[JobLogRead.model_validate(entry) for entry in logs],
            )
        )

    last_updated = max([_as_utc(job.updated_at) for job in jobs] + [_as_utc(version.updated_at)])
    return ResumeTimelineData(
        resume_version_id=resume_version_id,
        user_id=version.user_id,
        stages=stages,
        overall_status=_overall_status([stage.status for stage in stages]),
        created_at=version.created_at,
        last_updated=last_updated,
    )


def _overall_status(statuses: list[str]) -> str:
    if "failed" in statuses:
        return "failed"
    if all(status in SATISFIED_STATUSES for status in statuses):
        return "completed"
    if all(status == "pending" for status in statuses):
        return "pending"
    return "in_progress"


def _check_stage(stage: str) -> str:
    if stage not in STAGE_NAMES:
        raise ValidationError(f"Unknown stage '{stage}'. Expected one of: {', '.join(STAGE_NAMES)}")
    return stage


def _require_predecessor(db: Session, resume_version_id: int, stage: str) -> None:
    index = STAGE_NAMES.index(stage)
    if index == 0:
        return
    previous = STAGE_NAMES[index - 1]
    status = stage_status(db, resume_version_id, previous)
    if status not in SATISFIED_STATUSES:
        raise ValidationError(f"Stage '{stage}' cannot start: predecessor '{previous}' is {status}")


def _require_in_progress(db: Session, resume_version_id: int, stage: str) -> PipelineJob:
    latest = _latest_job(db, resume_version_id, _check_stage(stage))
    if latest is None or latest.status != "in_progress":
        raise ValidationError(f"Stage '{stage}' has no attempt in progress")
    return latest


def _latest_job(db: Session, resume_version_id: int, stage: str) -> PipelineJob | None:
    return db.scalar(
        select(PipelineJob)
        .where(PipelineJob.resume_version_id == resume_version_id, PipelineJob.stage == stage)
        .order_by(PipelineJob.id.desc())
        .limit(1)
    )


def _attempt_count(db: Session, resume_version_id: int, stage: str) -> int:
    return len(
        db.scalars(
            select(PipelineJob.id).where(
                PipelineJob.resume_version_id == resume_version_id,
                PipelineJob.stage == stage,
            )
        ).all()
    )


def _add_log(
    db: Session,
    job: PipelineJob,
    level: str,
    message: str,
    metadata: dict[str, Any] | None = None,
) -> JobLog:
    entry = JobLog(job_id=job.id, stage=job.stage, level=level, message=message, metadata_json=metadata or {})
    db.add(entry)
    return entry


def _duration_ms(started_at: datetime | None, completed_at: datetime | None) -> float | None:
    if started_at is None or completed_at is None:
        return None
    return round((_as_utc(completed_at) - _as_utc(started_at)).total_seconds() * 1000.0, 2)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on round trip.
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _now() -> datetime:
    return datetime.now(timezone.utc)
