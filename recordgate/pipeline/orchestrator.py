"""
Pipeline orchestrator - runs the full validation pipeline over one batch.
"""
import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Sequence, Union

from ..config import Config, get_config
from ..models.constraints import PipelineSpec
from ..models.evidence import RecordEvidence
from ..models.record import Record
from ..models.report import PipelineResult
from ..rules import (
    DEFAULT_AUTHENTICITY_RULES,
    DEFAULT_CONTENT_RULES,
    DEFAULT_NORMALIZATION_RULES,
    DEFAULT_SENIORITY_RULES,
    FORMAT_PATTERNS,
)

from .anomaly import AnomalyDetector
from .authenticity import AuthenticityChecker
from .constraints import ConstraintEngine
from .dedup import Deduplicator
from .enrichment import RecordEnricher
from .experience import ExperienceCalculator
from .gate import ValidationGate
from .normalizer import Normalizer
from .report import build_report
from .schema import SchemaValidator


logger = logging.getLogger(__name__)


EvidenceInput = Union[RecordEvidence, Mapping[str, Any]]


def _find_evidence(
    record: Record,
    evidence: Mapping[str, EvidenceInput],
) -> Optional[RecordEvidence]:
    """Evidence keyed by record id, else by source URL."""
    for key in (record.record_id, record.source_url, record.get("canonical_url")):
        if key and key in evidence:
            found = evidence[key]
            if isinstance(found, RecordEvidence):
                return found
            return RecordEvidence.model_validate(found)
    return None


def run_pipeline(
    raw_records: Sequence[Union[Record, Mapping[str, Any]]],
    spec: Union[PipelineSpec, Mapping[str, Any]],
    evidence: Optional[Mapping[str, EvidenceInput]] = None,
    config: Optional[Config] = None,
    now: Optional[datetime] = None,
) -> PipelineResult:
    """
    Run the full validation pipeline.

    Pipeline steps:
    1. Normalize tagged fields
    2. Schema pre-check (logged; the gate decides)
    3. Batch uniformity heuristic
    4. Deduplicate and merge
    5. Outliers and content sanity
    6. Enrich
    7. Gate: schema, constraints and authenticity per candidate
    8. Report

    Args:
        raw_records: Scraped mappings or Record objects
        spec: Pipeline specification (or plain data for one)
        evidence: Pre-fetched evidence keyed by record id or source URL
        config: Settings (uses the environment config if None)
        now: Processing time for open-ended dates

    Returns:
        PipelineResult with clean and rejected records and the report

    Raises:
        SpecificationError: unknown constraint type, field-type tag,
            format pattern or seniority level
    """
    config = config or get_config()
    if not isinstance(spec, PipelineSpec):
        spec = PipelineSpec.from_mapping(dict(spec))
    evidence = evidence or {}
    run_id = str(uuid.uuid4())[:8]
    started_at = datetime.now(timezone.utc)

    logger.info(f"Starting validation run {run_id} with {len(raw_records)} records")

    # Initialize components
    thresholds = config.thresholds
    normalizer = Normalizer(
        rules=DEFAULT_NORMALIZATION_RULES.with_overrides(
            default_phone_region=config.normalization.default_phone_region,
            dayfirst=config.normalization.dayfirst,
        ),
        now=now or started_at,
    )
    experience = ExperienceCalculator(normalizer)
    schema_validator = SchemaValidator(spec.field_types, spec.required_fields)
    engine = ConstraintEngine(
        normalizer,
        experience,
        format_patterns=FORMAT_PATTERNS,
        seniority_rules=DEFAULT_SENIORITY_RULES,
        home_region=config.normalization.home_region,
    )
    checker = AuthenticityChecker(
        normalizer,
        experience,
        rules=replace(
            DEFAULT_AUTHENTICITY_RULES,
            page_pass_ratio=thresholds.page_pass_ratio,
            page_uncertain_ratio=thresholds.page_uncertain_ratio,
            cross_source_pass_ratio=thresholds.cross_source_pass_ratio,
            cross_source_uncertain_ratio=thresholds.cross_source_uncertain_ratio,
            profile_match_ratio=thresholds.profile_match_ratio,
            duration_tolerance_years=thresholds.duration_tolerance_years,
            uniformity_min_batch=thresholds.uniformity_min_batch,
            uniformity_shape_share=thresholds.uniformity_shape_share,
        ),
    )
    detector = AnomalyDetector(
        rules=replace(
            DEFAULT_CONTENT_RULES,
            iqr_multiplier=thresholds.iqr_multiplier,
            min_outlier_samples=thresholds.min_outlier_samples,
            min_description_length=thresholds.min_description_length,
        )
    )
    deduplicator = Deduplicator(
        key_fields=spec.dedup_key,
        source_priority=spec.source_priority,
        fuzzy_threshold=spec.fuzzy_threshold if spec.fuzzy_threshold is not None else thresholds.fuzzy_threshold,
        compare_fields=spec.fuzzy_fields,
        block_field=spec.block_field,
    )
    enricher = RecordEnricher(normalizer, experience, home_region=config.normalization.home_region)
    gate = ValidationGate(schema_validator, engine, checker, spec.constraints)

    # Fail fast on specification errors before touching any record
    engine.validate_specs(spec.constraints)
    for tag in spec.normalizers.values():
        normalizer.check_tag(tag)

    records = [r if isinstance(r, Record) else Record.from_raw(r) for r in raw_records]

    # Step 1: Normalize
    logger.info("Step 1: Normalizing fields")
    for record in records:
        normalizer.normalize_record(record, spec.normalizers)

    # Step 2: Schema pre-check
    logger.info("Step 2: Checking schema")
    incomplete = sum(1 for r in records if not schema_validator.validate(r).required_ok)
    if incomplete:
        logger.info(f"{incomplete} records are missing required fields")

    # Step 3: Batch uniformity
    logger.info("Step 3: Checking batch uniformity")
    uniformity = checker.detect_batch_uniformity(records)

    # Step 4: Deduplicate
    logger.info("Step 4: Deduplicating")
    dedup = deduplicator.deduplicate(records)
    candidates = dedup.records

    # Step 5: Anomalies
    logger.info("Step 5: Detecting anomalies")
    outliers = detector.detect_outliers(candidates, spec.outlier_fields or None)
    quality = [outliers.get(r.record_id, []) + detector.check_content(r) for r in candidates]

    # Step 6: Enrich
    logger.info("Step 6: Enriching candidates")
    enricher.enrich_batch(candidates)

    # Step 7: Gate
    logger.info("Step 7: Gate decisions")
    clean: list[Record] = []
    rejected: list[Record] = []
    for record, issues in zip(candidates, quality):
        admitted = gate.decide(
            record,
            evidence=_find_evidence(record, evidence),
            quality_issues=issues,
            batch_flags=uniformity.flags,
        )
        (clean if admitted else rejected).append(record)

    # Step 8: Report
    report = build_report(
        run_id=run_id,
        started_at=started_at,
        total_input=len(records),
        clean=clean,
        rejected=rejected,
        duplicates=dedup.duplicates,
        batch_uniformity=uniformity,
    )

    logger.info(f"Validation run {run_id} completed: {len(clean)} clean, {len(rejected)} rejected")
    return PipelineResult(
        clean=clean,
        rejected=rejected,
        report=report,
        merge_groups=dedup.groups,
        duplicates=dedup.duplicates,
    )
