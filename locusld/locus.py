"""
Region selection, reference variant picking and down-sampling.

All functions here are pure filters over the variant metadata table. The
table follows the GEMMA layout used throughout the package: ``chr``, ``rs``
(variant id), ``ps`` (base-pair position) plus statistic columns.
"""

import re
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np
import pandas as pd

from locusld.errors import EmptyInputError
from locusld.log import logger


# Unit conversion factors for positions
UNIT_FACTORS = {"mb": 1e-6, "kb": 1e-3, "bp": 1}

_REGION_RE = re.compile(r"^(?:chr)?([^:]+):([\d,]+)-([\d,]+)$", re.IGNORECASE)


@dataclass(frozen=True)
class Region:
    """Closed genomic interval ``chrom:start-end`` in base pairs."""

    chrom: str
    start: int
    end: int

    def __post_init__(self):
        object.__setattr__(self, "chrom", str(self.chrom))
        object.__setattr__(self, "start", int(self.start))
        object.__setattr__(self, "end", int(self.end))
        if self.start > self.end:
            raise ValueError(
                f"Region start ({self.start}) must not be greater than end ({self.end})."
            )

    @classmethod
    def parse(cls, text: str) -> "Region":
        """Parse ``11:94,000,000-98,000,000`` (an optional ``chr`` prefix is dropped)."""
        match = _REGION_RE.match(text.strip())
        if match is None:
            raise ValueError(f"Invalid region '{text}', expected chrom:start-end.")
        chrom, start, end = match.groups()
        return cls(chrom, int(start.replace(",", "")), int(end.replace(",", "")))

    def contains(self, chrom, pos) -> bool:
        return str(chrom) == self.chrom and self.start <= pos <= self.end

    @property
    def length(self) -> int:
        return self.end - self.start

    def __str__(self):
        return f"{self.chrom}:{self.start}-{self.end}"


def select_region(variants: pd.DataFrame, region: Region) -> pd.DataFrame:
    """
    Return the variants of ``region``, in input order.

    :param variants: Variant metadata with ``chr`` and ``ps`` columns
    :param region: Closed interval to keep
    :return: Filtered copy with a fresh index, possibly empty
    """
    mask = (
        (variants["chr"].astype(str) == region.chrom)
        & (variants["ps"] >= region.start)
        & (variants["ps"] <= region.end)
    )
    selected = variants.loc[mask].reset_index(drop=True)
    logger.info(f"Selected {len(selected)} variants in region {region}.")
    return selected


def pick_reference(variants: pd.DataFrame, stat: str = "logp") -> pd.Series:
    """
    Pick the variant with the strongest association statistic.

    Ties go to the first variant in input order. Variants with a missing
    statistic are not candidates.

    :param variants: Variant metadata table
    :param stat: Column holding the association statistic
    :return: The selected row
    """
    if stat not in variants.columns:
        raise ValueError(f"Association statistic column '{stat}' not found.")
    values = pd.to_numeric(variants[stat], errors="coerce").to_numpy(dtype=np.float64)
    candidates = np.flatnonzero(~np.isnan(values))
    if len(candidates) == 0:
        raise EmptyInputError("No candidate variants to pick a reference from.")
    # np.argmax returns the first occurrence of the maximum
    best = candidates[np.argmax(values[candidates])]
    return variants.iloc[best]


def downsample_indices(n: int, k: int) -> np.ndarray:
    """Indices of ``k`` evenly spaced items among ``n``, first and last included."""
    if n == 0:
        raise EmptyInputError("Cannot down-sample an empty variant list.")
    if k < 1:
        raise ValueError(f"Down-sampling target must be at least 1, got {k}.")
    if k >= n:
        return np.arange(n)
    # Spacing is at least one when k <= n, so rounded indices stay unique
    return np.round(np.linspace(0, n - 1, k)).astype(np.int64)


def downsample(variants: pd.DataFrame, k: int) -> pd.DataFrame:
    """Keep ``k`` evenly spaced rows of ``variants``, preserving their order."""
    idx = downsample_indices(len(variants), k)
    if len(idx) < len(variants):
        logger.info(f"Down-sampled {len(variants)} variants to {len(idx)}.")
    return variants.iloc[idx].reset_index(drop=True)


def position_labels(positions: Sequence[int], unit: str = "mb", digits: int = 2) -> List[str]:
    """Axis labels for positions, rounded in the requested unit."""
    unit = unit.lower()
    if unit not in UNIT_FACTORS:
        raise ValueError(f"Unsupported unit '{unit}', expected one of {sorted(UNIT_FACTORS)}.")
    scaled = np.asarray(positions, dtype=np.float64) * UNIT_FACTORS[unit]
    if unit == "bp":
        return [str(int(p)) for p in scaled]
    return [f"{p:.{digits}f}" for p in scaled]
