"""
Failures raised by the locus correlation engine.

Every failure is a subclass of :class:`LocusError` so callers can catch the
whole family per variant and keep going. Each one also derives from the
closest builtin exception, which keeps ``except ValueError`` style callers
working.
"""

from typing import Optional, Sequence


class LocusError(Exception):
    """Base class for locus and LD computation failures."""

    #: Short label written to output tables for failed variants.
    status = "error"

    def __init__(self, message: str, variants: Optional[Sequence[str]] = None):
        super().__init__(message)
        self.variants = tuple(variants) if variants is not None else ()


class EmptyInputError(LocusError, ValueError):
    """A region or candidate set has no variants where at least one is needed."""

    status = "empty"


class UndefinedCorrelationError(LocusError, ArithmeticError):
    """Zero variance among the jointly observed individuals of a pair."""

    status = "zero_variance"


class DimensionMismatchError(LocusError, ValueError):
    """Genotype columns do not share the same individual index space."""

    status = "dimension_mismatch"


class InsufficientOverlapError(LocusError, ValueError):
    """Fewer than two individuals are observed for both variants of a pair."""

    status = "insufficient_overlap"


class VariantNotFoundError(LocusError, LookupError):
    """A requested variant is absent from the genotype store."""

    status = "not_genotyped"
