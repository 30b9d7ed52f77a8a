"""RFC 9457 Problem Details exception hierarchy.

All API errors extend ProblemDetailError and are converted to
application/problem+json responses by the exception handler middleware.

The analytical core raises only InvalidInputError. Missing data is a
NoData value and unsafe findings are result values, so neither
appears here.
"""

from shared.config import settings


def _problem_uri(slug: str) -> str:
    return f"{settings.problem_base_uri}/{slug}"


class ProblemDetailError(Exception):
    def __init__(
        self,
        type_uri: str,
        title: str,
        status: int,
        detail: str,
        violations: list[dict] | None = None,
    ):
        self.type_uri = type_uri
        self.title = title
        self.status = status
        self.detail = detail
        self.violations = violations
        super().__init__(detail)


class InvalidInputError(ProblemDetailError):
    """Input rejected at the boundary of a pure computation."""

    def __init__(self, violations: list[dict]):
        reasons = ", ".join(v["reason"] for v in violations)
        super().__init__(
            type_uri=_problem_uri("invalid-input"),
            title="Invalid Input",
            status=422,
            detail=f"Input contains {len(violations)} validation error(s): {reasons}",
            violations=violations,
        )

    @property
    def reasons(self) -> list[str]:
        return [v["reason"] for v in self.violations or []]


class NotFoundError(ProblemDetailError):
    def __init__(self, detail: str):
        super().__init__(
            type_uri=_problem_uri("not-found"),
            title="Not Found",
            status=404,
            detail=detail,
        )


class InvalidDateRangeError(ProblemDetailError):
    def __init__(self, start: str, end: str):
        super().__init__(
            type_uri=_problem_uri("invalid-date-range"),
            title="Invalid Date Range",
            status=400,
            detail=f"Parameter 'start' ({start}) must be before 'end' ({end})",
        )


class UnknownMedicationError(NotFoundError):
    def __init__(self, medication_id: str):
        super().__init__(f"Medication '{medication_id}' is not in the formulary")
        self.title = "Unknown Medication"
        self.type_uri = _problem_uri("unknown-medication")
