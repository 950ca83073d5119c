"""
Upload validation.

Runs before estimation and rejects uploads the shop cannot print:
- file extension outside the allowed mesh formats
- file larger than the upload limit
- model larger than the printer's build volume

The estimator itself never validates; it quotes whatever it is given.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Sequence

from print_quote.io.mesh_format import normalize_extension
from print_quote.project_config import UploadConfig

logger = logging.getLogger(__name__)


class ValidationSeverity(Enum):
    """Severity level of validation issues."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class ValidationIssue:
    """A single problem found with an upload."""
    code: str
    severity: ValidationSeverity
    message: str
    filename: str = ""

    def __str__(self) -> str:
        prefix = f"{self.filename}: " if self.filename else ""
        return f"[{self.severity.value.upper()}] {self.code}: {prefix}{self.message}"


@dataclass
class ValidationReport:
    """Validation findings for one or more uploads."""
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == ValidationSeverity.ERROR]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == ValidationSeverity.WARNING]

    @property
    def is_valid(self) -> bool:
        """True when there are no error-level issues."""
        return not self.errors

    def extend(self, other: 'ValidationReport') -> 'ValidationReport':
        self.issues.extend(other.issues)
        return self

    def raise_for_errors(self) -> None:
        """Raise UploadValidationError if the report holds any error."""
        if not self.is_valid:
            raise UploadValidationError(self)

    def summary(self) -> str:
        if not self.issues:
            return "Upload validation: OK"
        lines = ["Upload validation:"]
        lines.extend(f"  - {issue}" for issue in self.issues)
        return "\n".join(lines)


class UploadValidationError(Exception):
    """Upload rejected before quoting."""

    def __init__(self, report: ValidationReport):
        self.report = report
        super().__init__("; ".join(str(i) for i in report.errors))


def validate_upload(filename: str, size_bytes: int,
                    config: Optional[UploadConfig] = None) -> ValidationReport:
    """Check extension and size of one uploaded file."""
    config = config or UploadConfig()
    report = ValidationReport()

    ext = normalize_extension(filename)
    if ext not in config.allowed_extensions:
        report.issues.append(ValidationIssue(
            code="UNSUPPORTED_EXTENSION",
            severity=ValidationSeverity.ERROR,
            message=f"only {', '.join(config.allowed_extensions)} files can be quoted",
            filename=filename,
        ))

    if size_bytes > config.max_file_size_bytes:
        limit_mb = config.max_file_size_bytes / (1024 * 1024)
        report.issues.append(ValidationIssue(
            code="FILE_TOO_LARGE",
            severity=ValidationSeverity.ERROR,
            message=f"file is {size_bytes} bytes, limit is {limit_mb:.0f} MB",
            filename=filename,
        ))
    elif size_bytes == 0:
        report.issues.append(ValidationIssue(
            code="EMPTY_FILE",
            severity=ValidationSeverity.WARNING,
            message="file is empty and will be quoted at the minimum weight",
            filename=filename,
        ))

    for issue in report.issues:
        logger.log(logging.ERROR if issue.severity == ValidationSeverity.ERROR else logging.WARNING,
                   "%s", issue)
    return report


def validate_dimensions(dimensions_mm: Sequence[float], filename: str = "",
                        config: Optional[UploadConfig] = None) -> ValidationReport:
    """Check that a model fits the build volume (every extent <= max_dimension_mm)."""
    config = config or UploadConfig()
    report = ValidationReport()

    too_large = [d for d in dimensions_mm if d > config.max_dimension_mm]
    if too_large:
        dims = " x ".join(f"{d:.1f}" for d in dimensions_mm)
        report.issues.append(ValidationIssue(
            code="MODEL_TOO_LARGE",
            severity=ValidationSeverity.ERROR,
            message=f"model is {dims} mm, printer limit is {config.max_dimension_mm} mm per axis",
            filename=filename,
        ))
        logger.error("%s", report.issues[-1])
    return report


def validate_uploads(files: Iterable[tuple], config: Optional[UploadConfig] = None) -> ValidationReport:
    """Validate several ``(filename, size_bytes)`` pairs into one report."""
    report = ValidationReport()
    for filename, size_bytes in files:
        report.extend(validate_upload(filename, size_bytes, config))
    return report
