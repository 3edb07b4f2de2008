"""Resume version pipeline routes: ingest, diff, normalize, enrich, review, apply."""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Path, Query
from sqlalchemy.orm import Session

from resume_ledger.db.dependencies import get_db
from resume_ledger.dependencies import get_current_user_id
from resume_ledger.parsing.types import ParsedField
from resume_ledger.schemas.common import ApiResponse
from resume_ledger.schemas.diffs import DiffAnalysisResult, MergeReviewItem, ResumeDiffRead
from resume_ledger.schemas.enrichment import BulkEnrichmentResult
from resume_ledger.schemas.merge_decisions import (
    ApplyDecisionsSummary,
    DecisionOutcome,
    MergeDecisionCreate,
    MergeDecisionRead,
)
from resume_ledger.schemas.normalization import NormalizationResult
from resume_ledger.schemas.resume import (
    ParsedFieldCreate,
    ParsedResumeEntityRead,
    ResumeVersionCreate,
    ResumeVersionRead,
)
from resume_ledger.schemas.timeline import (
    PipelineJobRead,
    ResumeTimelineData,
    StageCompletionRequest,
    StageFailureRequest,
)
from resume_ledger.services.background_jobs import run_post_parse_jobs
from resume_ledger.services.merge_decisions import (
    apply_merge_decision,
    create_merge_decision,
    get_merge_decision,
    list_merge_decisions,
)
from resume_ledger.services.reconciliation import (
    apply_all_decisions,
    ingest_parsed_fields,
    register_resume_upload,
    run_diff_stage,
    run_enrich_stage,
    run_normalize_stage,
    run_review_stage,
)
from resume_ledger.services.resume_diffs import list_merge_review_items, list_resume_diffs
from resume_ledger.services.resumes import get_resume_version, list_parsed_entities, list_resume_versions
from resume_ledger.services.timeline import (
    complete_stage,
    fail_stage,
    get_resume_timeline,
    skip_stage,
    start_stage,
)

router = APIRouter(prefix="/resume-versions")


@router.post("", response_model=ApiResponse[ResumeVersionRead], status_code=201)
def create_version(
    payload: ResumeVersionCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ApiResponse[ResumeVersionRead]:
    """Register an uploaded resume; completes the upload stage."""

    version = register_resume_upload(db, user_id, payload.label, file_name=payload.file_name)
    return ApiResponse(data=ResumeVersionRead.model_validate(version))


@router.get("", response_model=ApiResponse[list[ResumeVersionRead]])
def list_versions(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ApiResponse[list[ResumeVersionRead]]:
    return ApiResponse(data=[ResumeVersionRead.model_validate(row) for row in list_resume_versions(db, user_id)])


@router.get("/{version_id}", response_model=ApiResponse[ResumeVersionRead])
def version_detail(
    version_id: int = Path(..., ge=1),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ApiResponse[ResumeVersionRead]:
    return ApiResponse(data=ResumeVersionRead.model_validate(get_resume_version(db, version_id, user_id=user_id)))


@router.post(
    "/{version_id}/parsed-entities",
    response_model=ApiResponse[list[ParsedResumeEntityRead]],
    status_code=201,
)
def ingest_parsed(
    payload: list[ParsedFieldCreate],
    background_tasks: BackgroundTasks,
    version_id: int = Path(..., ge=1),
    run_pipeline: bool = Query(default=False),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ApiResponse[list[ParsedResumeEntityRead]]:
    """Record parser output as the parse stage; optionally queue diff/normalize/enrich."""

    rows = ingest_parsed_fields(
        db,
        version_id,
        [ParsedField(**item.model_dump()) for item in payload],
        user_id=user_id,
    )
    if run_pipeline:
        background_tasks.add_task(run_post_parse_jobs, version_id)
    return ApiResponse(data=[ParsedResumeEntityRead.model_validate(row) for row in rows])


@router.get("/{version_id}/parsed-entities", response_model=ApiResponse[list[ParsedResumeEntityRead]])
def parsed_entities(
    version_id: int = Path(..., ge=1),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ApiResponse[list[ParsedResumeEntityRead]]:
    get_resume_version(db, version_id, user_id=user_id)
    rows = list_parsed_entities(db, version_id)
    return ApiResponse(data=[ParsedResumeEntityRead.model_validate(row) for row in rows])


@router.post("/{version_id}/diff-analysis", response_model=ApiResponse[DiffAnalysisResult])
def analyze_diffs(
    version_id: int = Path(..., ge=1),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ApiResponse[DiffAnalysisResult]:
    return ApiResponse(data=run_diff_stage(db, version_id, user_id=user_id))


@router.get("/{version_id}/diffs", response_model=ApiResponse[list[ResumeDiffRead]])
def diffs(
    version_id: int = Path(..., ge=1),
    requires_review: bool | None = Query(default=None),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ApiResponse[list[ResumeDiffRead]]:
    get_resume_version(db, version_id, user_id=user_id)
    rows = list_resume_diffs(db, version_id, requires_review=requires_review)
    return ApiResponse(data=[ResumeDiffRead.model_validate(row) for row in rows])


@router.get("/{version_id}/review-items", response_model=ApiResponse[list[MergeReviewItem]])
def review_items(
    version_id: int = Path(..., ge=1),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ApiResponse[list[MergeReviewItem]]:
    get_resume_version(db, version_id, user_id=user_id)
    return ApiResponse(data=list_merge_review_items(db, version_id))


@router.post("/{version_id}/normalization", response_model=ApiResponse[NormalizationResult])
def normalize(
    version_id: int = Path(..., ge=1),
    entity_type: str | None = Query(default=None),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ApiResponse[NormalizationResult]:
    return ApiResponse(data=run_normalize_stage(db, version_id, user_id=user_id, entity_type=entity_type))


@router.post("/{version_id}/enrichment", response_model=ApiResponse[BulkEnrichmentResult])
def enrich(
    version_id: int = Path(..., ge=1),
    force_refresh: bool = Query(default=False),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ApiResponse[BulkEnrichmentResult]:
    return ApiResponse(data=run_enrich_stage(db, version_id, user_id=user_id, force_refresh=force_refresh))


@router.post("/{version_id}/review", response_model=ApiResponse[list[MergeDecisionRead]])
def submit_review(
    payload: list[MergeDecisionCreate],
    version_id: int = Path(..., ge=1),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ApiResponse[list[MergeDecisionRead]]:
    """Record a full review pass as the review stage."""

    rows = run_review_stage(db, version_id, user_id, payload)
    return ApiResponse(data=[MergeDecisionRead.model_validate(row) for row in rows])


@router.post("/{version_id}/merge-decisions", response_model=ApiResponse[MergeDecisionRead], status_code=201)
def record_decision(
    payload: MergeDecisionCreate,
    version_id: int = Path(..., ge=1),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ApiResponse[MergeDecisionRead]:
    decision = create_merge_decision(db, user_id, version_id, payload)
    return ApiResponse(data=MergeDecisionRead.model_validate(decision))


@router.get("/{version_id}/merge-decisions", response_model=ApiResponse[list[MergeDecisionRead]])
def decisions(
    version_id: int = Path(..., ge=1),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ApiResponse[list[MergeDecisionRead]]:
    get_resume_version(db, version_id, user_id=user_id)
    rows = list_merge_decisions(db, version_id)
    return ApiResponse(data=[MergeDecisionRead.model_validate(row) for row in rows])


@router.post("/{version_id}/merge-decisions/apply-all", response_model=ApiResponse[ApplyDecisionsSummary])
def apply_all(
    version_id: int = Path(..., ge=1),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ApiResponse[ApplyDecisionsSummary]:
    """Apply every unapplied decision; failures are counted, not raised.

    Tracked as the update stage only when a review pass was recorded.
    """

    return ApiResponse(data=apply_all_decisions(db, version_id, user_id=user_id))


@router.post(
    "/{version_id}/merge-decisions/{decision_id}/apply",
    response_model=ApiResponse[DecisionOutcome],
)
def apply_one(
    version_id: int = Path(..., ge=1),
    decision_id: int = Path(..., ge=1),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ApiResponse[DecisionOutcome]:
    decision = get_merge_decision(db, decision_id, user_id=user_id)
    if decision.resume_version_id != version_id:
        raise HTTPException(status_code=404, detail="Merge decision not found")
    return ApiResponse(data=apply_merge_decision(db, decision))


@router.get("/{version_id}/timeline", response_model=ApiResponse[ResumeTimelineData])
def timeline(
    version_id: int = Path(..., ge=1),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ApiResponse[ResumeTimelineData]:
    return ApiResponse(data=get_resume_timeline(db, version_id, user_id=user_id))


@router.post("/{version_id}/stages/{stage}/start", response_model=ApiResponse[PipelineJobRead])
def stage_start(
    version_id: int = Path(..., ge=1),
    stage: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ApiResponse[PipelineJobRead]:
    """Start (or explicitly retry) a stage run by an external collaborator."""

    return ApiResponse(data=PipelineJobRead.model_validate(start_stage(db, version_id, stage, user_id=user_id)))


@router.post("/{version_id}/stages/{stage}/complete", response_model=ApiResponse[PipelineJobRead])
def stage_complete(
    payload: StageCompletionRequest,
    version_id: int = Path(..., ge=1),
    stage: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ApiResponse[PipelineJobRead]:
    get_resume_version(db, version_id, user_id=user_id)
    job = complete_stage(db, version_id, stage, details=payload.details)
    return ApiResponse(data=PipelineJobRead.model_validate(job))


@router.post("/{version_id}/stages/{stage}/fail", response_model=ApiResponse[PipelineJobRead])
def stage_fail(
    payload: StageFailureRequest,
    version_id: int = Path(..., ge=1),
    stage: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ApiResponse[PipelineJobRead]:
    get_resume_version(db, version_id, user_id=user_id)
    job = fail_stage(db, version_id, stage, payload.error_message)
    return ApiResponse(data=PipelineJobRead.model_validate(job))


@router.post("/{version_id}/stages/{stage}/skip", response_model=ApiResponse[PipelineJobRead])
def stage_skip(
    version_id: int = Path(..., ge=1),
    stage: str = Path(..., min_length=1),
    reason: str | None = Query(default=None),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ApiResponse[PipelineJobRead]:
    job = skip_stage(db, version_id, stage, reason=reason, user_id=user_id)
    return ApiResponse(data=PipelineJobRead.model_validate(job))
