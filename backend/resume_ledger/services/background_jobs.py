"""Background jobs for post-parse reconciliation."""

from __future__ import annotations

import logging
from time import perf_counter

from resume_ledger.db.session import SessionLocal
from resume_ledger.services.reconciliation import run_diff_stage, run_enrich_stage, run_normalize_stage

logger = logging.getLogger(__name__)


def run_diff_job(resume_version_id: int) -> None:
    """Run diff analysis in a background-friendly DB session."""

    total_started = perf_counter()
    db = SessionLocal()
    try:
        result = run_diff_stage(db, resume_version_id)
        logger.info(
            "jobs.diff_timing resume_version_id=%s diffs=%d requires_review=%d total_ms=%.2f",
            resume_version_id,
            result.summary.total,
            result.summary.requires_review,
            (perf_counter() - total_started) * 1000.0,
        )
    except Exception:
        logger.exception(
            "jobs.diff_failed resume_version_id=%s elapsed_ms=%.2f",
            resume_version_id,
            (perf_counter() - total_started) * 1000.0,
        )
        raise
    finally:
        db.close()


def run_normalization_job(resume_version_id: int) -> None:
    """Link parsed names to the canonical graph in a background-friendly DB session."""

    total_started = perf_counter()
    db = SessionLocal()
    try:
        result = run_normalize_stage(db, resume_version_id)
        logger.info(
            "jobs.normalization_timing resume_version_id=%s total=%d created=%d total_ms=%.2f",
            resume_version_id,
            result.summary.total,
            result.summary.created,
            (perf_counter() - total_started) * 1000.0,
        )
    except Exception:
        logger.exception(
            "jobs.normalization_failed resume_version_id=%s elapsed_ms=%.2f",
            resume_version_id,
            (perf_counter() - total_started) * 1000.0,
        )
        raise
    finally:
        db.close()


def run_enrichment_job(resume_version_id: int) -> None:
    total_started = perf_counter()
    db = SessionLocal()
    try:
        result = run_enrich_stage(db, resume_version_id)
        logger.info(
            "jobs.enrichment_timing resume_version_id=%s succeeded=%d failed=%d total_ms=%.2f",
            resume_version_id,
            result.succeeded,
            result.failed,
            (perf_counter() - total_started) * 1000.0,
        )
    except Exception:
        logger.exception(
            "jobs.enrichment_failed resume_version_id=%s elapsed_ms=%.2f",
            resume_version_id,
            (perf_counter() - total_started) * 1000.0,
        )
        raise
    finally:
        db.close()


def run_post_parse_jobs(resume_version_id: int) -> None:
    """Run diff, normalization and enrichment stages in order."""

    total_started = perf_counter()
    run_diff_job(resume_version_id)
    run_normalization_job(resume_version_id)
    run_enrichment_job(resume_version_id)
    logger.info(
        "jobs.post_parse_timing resume_version_id=%s total_ms=%.2f",
        resume_version_id,
        (perf_counter() - total_started) * 1000.0,
    )
