"""
Final validation gate - the single admission decision.

A record is admitted iff the required-field/schema check, the constraint
aggregate and the authenticity verdict all PASS. Every failing check adds its
own rejection reason. The gate seals the record once it has decided.
"""
import logging
from statistics import mean
from typing import Optional, Sequence

from ..errors import SealedRecordError
from ..models.constraints import ConstraintSpec
from ..models.evidence import RecordEvidence
from ..models.record import Record
from ..models.verdicts import (
    AuthenticityVerdict,
    ConstraintVerdict,
    QualityIssue,
    RecordStatus,
    RejectionCategory,
    RejectionReason,
    SchemaResult,
    ValidationBlock,
    VerdictStatus,
)
from .authenticity import AuthenticityChecker
from .constraints import ConstraintEngine
from .schema import SchemaValidator


logger = logging.getLogger(__name__)


def _schema_reason(result: SchemaResult) -> RejectionReason:
    if not result.required_ok:
        missing = result.missing_fields + result.empty_fields
        details = [{"field": name, "problem": "missing"} for name in result.missing_fields]
        details += [{"field": name, "problem": "empty"} for name in result.empty_fields]
        details += [e.model_dump() for e in result.type_errors]
        return RejectionReason(
            category=RejectionCategory.MISSING_REQUIRED_FIELDS,
            check="schema",
            message=f"Missing required fields: {', '.join(missing)}",
            details=details,
        )
    return RejectionReason(
        category=RejectionCategory.SCHEMA_TYPE_ERROR,
        check="schema",
        message="Wrong field types: " + ", ".join(
            f"{e.field} ({e.actual}, expected {e.expected})" for e in result.type_errors
        ),
        details=[e.model_dump() for e in result.type_errors],
    )


def _constraint_reason(verdicts: Sequence[ConstraintVerdict]) -> RejectionReason:
    failing = [v for v in verdicts if v.status != VerdictStatus.PASS]
    return RejectionReason(
        category=RejectionCategory.CONSTRAINT_FAILED,
        check="constraints",
        message="Failed constraints: " + ", ".join(
            f"{v.constraint} ({v.status.value})" for v in failing
        ),
        details=[v.model_dump(mode="json") for v in failing],
    )


def _authenticity_reason(verdict: AuthenticityVerdict) -> RejectionReason:
    failing = {
        kind: check for kind, check in verdict.checks.items()
        if check.status != VerdictStatus.PASS
    }
    if verdict.synthetic_findings:
        category = RejectionCategory.SYNTHETIC_DATA
        message = "Synthetic markers: " + ", ".join(
            f"{f.field}='{f.marker}'" for f in verdict.synthetic_findings
        )
        details = [f.model_dump() for f in verdict.synthetic_findings]
    elif verdict.unreachable:
        category = RejectionCategory.UNVERIFIABLE_EVIDENCE
        message = f"Evidence could not be fetched: {', '.join(verdict.unreachable)}"
        details = [{"check": kind, "note": failing[kind].note} for kind in verdict.unreachable if kind in failing]
    else:
        category = RejectionCategory.AUTHENTICITY_FAILED
        message = "Verification failed: " + ", ".join(
            f"{kind} ({check.status.value})" for kind, check in failing.items()
        )
        details = [m.model_dump(mode="json") for m in verdict.mismatches]

    # Other failing checks still show up in the details
    extra = [
        {"check": kind, "status": check.status.value, "note": check.note}
        for kind, check in failing.items()
        if kind != "synthetic" and kind not in verdict.unreachable
    ]
    if category != RejectionCategory.AUTHENTICITY_FAILED:
        details += extra
    return RejectionReason(category=category, check="authenticity", message=message, details=details)


class ValidationGate:
    """
    Re-runs the three admission checks and records the decision.

    No retries happen here, and a decided record cannot be decided again.
    """

    def __init__(
        self,
        schema_validator: SchemaValidator,
        engine: ConstraintEngine,
        checker: AuthenticityChecker,
        constraints: Sequence[ConstraintSpec] = (),
    ):
        self.schema_validator = schema_validator
        self.engine = engine
        self.checker = checker
        self.constraints = tuple(constraints)

    def decide(
        self,
        record: Record,
        evidence: Optional[RecordEvidence] = None,
        quality_issues: Sequence[QualityIssue] = (),
        batch_flags: Sequence[str] = (),
    ) -> bool:
        """Attach the final validation block, seal the record and return admission."""
        if record.sealed:
            raise SealedRecordError(record.record_id)

        schema_result = self.schema_validator.validate(record)
        verdicts = self.engine.evaluate_all(record, self.constraints)
        constraint_status = self.engine.aggregate(verdicts)
        authenticity = self.checker.check(record, evidence)

        reasons: list[RejectionReason] = []
        if schema_result.status != VerdictStatus.PASS:
            reasons.append(_schema_reason(schema_result))
        if constraint_status != VerdictStatus.PASS:
            reasons.append(_constraint_reason(verdicts))
        if not authenticity.passed:
            reasons.append(_authenticity_reason(authenticity))

        admitted = not reasons
        confidence = mean([authenticity.confidence] + [v.confidence for v in verdicts])

        record.validation = ValidationBlock(
            status=RecordStatus.PASSED if admitted else RecordStatus.REJECTED,
            schema_result=schema_result,
            constraint_status=constraint_status,
            constraint_verdicts=verdicts,
            authenticity=authenticity,
            quality_issues=list(quality_issues),
            batch_flags=list(batch_flags),
            rejection_reasons=reasons,
            completeness=self.schema_validator.completeness(record),
            confidence=round(confidence, 1),
        )
        record.seal()

        if admitted:
            logger.debug(f"Record {record.record_id}: admitted (confidence {confidence:.1f})")
        else:
            logger.info(
                f"Record {record.record_id}: rejected "
                f"({', '.join(r.category.value for r in reasons)})"
            )
        return admitted
