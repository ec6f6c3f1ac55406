"""Error taxonomy for the threshold and TCSF pipeline.

Every error here is local to one unit of work (a participant, a
participant/frequency cell or a literature dataset). Batch drivers catch
them, record a :class:`FailureRecord` and move on.
"""
from dataclasses import dataclass
import warnings


class TcsfError(ValueError):
    """Base class for recoverable pipeline errors."""


class MissingInput(TcsfError):
    """A participant file or a frequency block inside it is absent."""


class FitFailed(TcsfError):
    """The psychometric fit produced no valid bounded estimate."""


class InsufficientData(TcsfError):
    """Too few distinct points for the requested polynomial degree."""


class UnitConventionError(TcsfError):
    """A literature table does not state whether depths are percent or decimal."""


class PipelineWarning(UserWarning):
    """Emitted when a unit of work is skipped."""


@dataclass(frozen=True)
class FailureRecord:
    """One skipped unit of work."""
    unit: str
    kind: str
    message: str

    @classmethod
    def from_error(cls, unit, error):
        return cls(unit=unit, kind=type(error).__name__, message=str(error))

    def __str__(self):
        return f"{self.unit}: {self.kind} ({self.message})"


def warn_skipped(record: FailureRecord):
    """Emit a PipelineWarning for a skipped unit."""
    warnings.warn(f"{record}. Skipping.", PipelineWarning, stacklevel=2)
    return record
