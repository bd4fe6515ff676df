"""
Pairwise-complete Pearson correlation between dosage columns.

Missing dosages are ``NaN``. Every pair only uses the individuals observed
for both of its variants, so two targets correlated against the same
reference may be computed over different individuals.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from locusld.errors import (
    DimensionMismatchError,
    InsufficientOverlapError,
    LocusError,
    UndefinedCorrelationError,
)
from locusld.log import logger


ERROR_MODES = ("raise", "collect")


@dataclass
class ReferenceCorrelation:
    """Correlation of every region variant with the reference variant."""

    reference: str
    r: pd.Series
    failures: Dict[str, LocusError] = field(default_factory=dict)

    @property
    def r2(self) -> pd.Series:
        return (self.r ** 2).rename("r2")


@dataclass
class CorrelationMatrix:
    """Symmetric all-pairs correlation over a subset of variants."""

    values: pd.DataFrame
    squared: bool = False
    labels: List[str] = field(default_factory=list)
    failures: Dict[Tuple[str, str], LocusError] = field(default_factory=dict)

    @property
    def ids(self) -> List[str]:
        return list(self.values.index)

    def to_frame(self) -> pd.DataFrame:
        """Matrix with leading ``label`` and ``metric`` (r or r2) columns."""
        df = self.values.copy()
        df.index.name = "rs"
        df.insert(0, "metric", "r2" if self.squared else "r")
        if self.labels:
            df.insert(0, "label", self.labels)
        return df


def _check_errors(errors: str):
    if errors not in ERROR_MODES:
        raise ValueError(f"errors must be one of {ERROR_MODES}, got '{errors}'.")


def pairwise_complete(x, y) -> Tuple[np.ndarray, np.ndarray]:
    """
    Drop individuals missing a dosage in either column.

    :param x: Dosages of the first variant, one per individual
    :param y: Dosages of the second variant, same individual order
    :return: The jointly observed values of ``x`` and ``y``
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if x.ndim != 1 or y.ndim != 1 or x.shape != y.shape:
        raise DimensionMismatchError(
            f"Genotype columns must be 1-D with the same length, got shapes {x.shape} and {y.shape}."
        )
    observed = ~(np.isnan(x) | np.isnan(y))
    n = int(observed.sum())
    if n < 2:
        raise InsufficientOverlapError(
            f"Only {n} individual(s) observed for both variants, need at least 2."
        )
    return x[observed], y[observed]


def pearson_r(x, y) -> float:
    """Signed Pearson correlation over pairwise-complete observations."""
    x, y = pairwise_complete(x, y)
    # max == min is exact, unlike a variance compared against zero
    if x.max() == x.min() or y.max() == y.min():
        raise UndefinedCorrelationError(
            "Correlation is undefined for a variant with zero variance among jointly observed individuals."
        )
    dx = x - x.mean()
    dy = y - y.mean()
    # The (n - 1) denominators cancel, so plain sums of squares are used
    r = np.dot(dx, dy) / np.sqrt(np.dot(dx, dx) * np.dot(dy, dy))
    return float(np.clip(r, -1.0, 1.0))


def correlate_with_reference(
    reference,
    targets,
    ids: Sequence[str],
    reference_id: str,
    errors: str = "raise",
) -> ReferenceCorrelation:
    """
    Correlate each target column with the reference column.

    :param reference: Reference dosages, one per individual
    :param targets: Individuals x k matrix of target dosages
    :param ids: Variant ids of the k target columns
    :param reference_id: Id of the reference variant
    :param errors: ``"raise"`` to propagate the first failure, ``"collect"``
        to record failures and leave the variant out of the result
    """
    _check_errors(errors)
    reference = np.asarray(reference, dtype=np.float64)
    targets = np.asarray(targets, dtype=np.float64)
    if targets.ndim == 1:
        targets = targets[:, np.newaxis]
    if targets.ndim != 2 or targets.shape[0] != reference.shape[0]:
        raise DimensionMismatchError(
            f"Reference has {reference.shape[0]} individuals but targets have shape {targets.shape}."
        )
    if targets.shape[1] != len(ids):
        raise DimensionMismatchError(
            f"Got {len(ids)} variant ids for {targets.shape[1]} target columns."
        )

    values = {}
    failures: Dict[str, LocusError] = {}
    for j, variant in enumerate(ids):
        try:
            values[variant] = pearson_r(reference, targets[:, j])
        except LocusError as e:
            if errors == "raise":
                e.variants = (reference_id, variant)
                raise
            failures[variant] = e

    if failures:
        logger.warning(
            f"Correlation with {reference_id} failed for {len(failures)} of {len(ids)} variants."
        )
    r = pd.Series(values, index=[v for v in ids if v in values], dtype=np.float64, name="r")
    return ReferenceCorrelation(reference=reference_id, r=r, failures=failures)


def correlation_matrix(
    columns,
    ids: Sequence[str],
    squared: bool = False,
    errors: str = "raise",
    labels: Optional[Sequence[str]] = None,
) -> CorrelationMatrix:
    """
    Compute the all-pairs correlation matrix of ``k`` dosage columns.

    The upper triangle is computed and mirrored; the diagonal is set to 1.0.

    :param columns: Individuals x k matrix of dosages
    :param ids: Variant ids of the k columns
    :param squared: Return r2 instead of signed r
    :param errors: ``"raise"`` or ``"collect"`` (failed cells become NaN and
        are listed in ``failures``)
    :param labels: Optional display labels, one per column
    """
    _check_errors(errors)
    columns = np.asarray(columns, dtype=np.float64)
    if columns.ndim != 2 or columns.shape[1] != len(ids):
        raise DimensionMismatchError(
            f"Expected an individuals x {len(ids)} matrix, got shape {columns.shape}."
        )
    if labels is not None and len(labels) != len(ids):
        raise ValueError(f"Got {len(labels)} labels for {len(ids)} variants.")

    k = len(ids)
    matrix = np.eye(k, dtype=np.float64)
    failures: Dict[Tuple[str, str], LocusError] = {}
    for i in range(k):
        for j in range(i + 1, k):
            try:
                r = pearson_r(columns[:, i], columns[:, j])
            except LocusError as e:
                if errors == "raise":
                    e.variants = (ids[i], ids[j])
                    raise
                failures[(ids[i], ids[j])] = e
                r = np.nan
            matrix[i, j] = matrix[j, i] = r

    if squared:
        matrix = matrix ** 2
    np.fill_diagonal(matrix, 1.0)

    if failures:
        logger.warning(f"Correlation failed for {len(failures)} of {k * (k - 1) // 2} variant pairs.")
    values = pd.DataFrame(matrix, index=list(ids), columns=list(ids))
    return CorrelationMatrix(
        values=values,
        squared=squared,
        labels=list(labels) if labels is not None else [],
        failures=failures,
    )
