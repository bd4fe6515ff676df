"""
Read-only dosage store for individuals x variants genotype matrices.
"""

import os
from typing import Iterable, List, Optional, Set

import numpy as np
import pandas as pd

from locusld.errors import VariantNotFoundError
from locusld.log import logger


# Leading columns of a PLINK --recode A file
PLINK_RAW_COLUMNS = ["FID", "IID", "PAT", "MAT", "SEX", "PHENOTYPE"]


class DosageMatrix(object):
    """Dosages (0-2, NaN for missing) indexed by sample and variant id."""

    def __init__(self, df: pd.DataFrame):
        columns = df.columns.astype(str)
        if columns.duplicated().any():
            dups = columns[columns.duplicated()].unique().tolist()
            raise ValueError(f"Duplicated variant ids in genotype matrix: {dups[:5]}")
        numeric = df.apply(pd.to_numeric, errors="coerce")
        invalid = numeric.isna() & df.notna()
        if invalid.to_numpy().any():
            examples = sorted({str(v) for v in df.to_numpy()[invalid.to_numpy()]})
            raise ValueError(
                f"Found {int(invalid.to_numpy().sum())} non-numeric dosage values, e.g. {examples[:5]}."
            )
        df = numeric.astype(np.float64)
        df.columns = columns
        values = df.to_numpy()
        out_of_range = ~np.isnan(values) & ((values < 0) | (values > 2))
        if out_of_range.any():
            raise ValueError(
                f"Found {int(out_of_range.sum())} dosage values outside [0, 2]."
            )
        self._df = df

    @classmethod
    def from_file(cls, path: str, variants: Optional[Iterable[str]] = None) -> "DosageMatrix":
        """
        Load a genotype matrix, reading only the requested variant columns.

        :param path: ``.csv``, PLINK ``.raw`` or tab-separated file with sample
            ids in the first column
        :param variants: Variant ids to keep, all columns when None
        """
        if not os.path.isfile(path):
            raise FileNotFoundError(f"Genotype file not found: {path}")
        logger.info(f"Loading genotype dosages from {path}...")
        wanted: Optional[Set[str]] = set(map(str, variants)) if variants is not None else None

        if path.endswith(".raw"):
            df = cls._read_plink_raw(path, wanted)
        else:
            sep = "," if path.endswith(".csv") else "\t"
            header = pd.read_csv(path, sep=sep, nrows=0).columns
            sample_col = header[0]
            usecols = None
            if wanted is not None:
                usecols = [sample_col] + [c for c in header[1:] if c in wanted]
            df = pd.read_csv(path, sep=sep, usecols=usecols, index_col=sample_col,
                             dtype={sample_col: str})

        matrix = cls(df)
        logger.info(
            f"Loaded dosages for {matrix.n_samples} samples and {matrix.n_variants} variants."
        )
        return matrix

    @staticmethod
    def _read_plink_raw(path: str, wanted: Optional[Set[str]]) -> pd.DataFrame:
        header = pd.read_csv(path, sep=r"\s+", nrows=0).columns
        # Variant columns are named <id>_<counted allele>
        names = {c: c.rsplit("_", 1)[0] for c in header if c not in PLINK_RAW_COLUMNS}
        keep = [c for c, name in names.items() if wanted is None or name in wanted]
        df = pd.read_csv(path, sep=r"\s+", usecols=["IID"] + keep, index_col="IID",
                         dtype={"IID": str}, na_values=["NA"])
        return df.rename(columns=names)

    @property
    def samples(self) -> List[str]:
        return list(self._df.index)

    @property
    def variants(self) -> List[str]:
        return list(self._df.columns)

    @property
    def n_samples(self) -> int:
        return self._df.shape[0]

    @property
    def n_variants(self) -> int:
        return self._df.shape[1]

    def __contains__(self, variant) -> bool:
        return str(variant) in self._df.columns

    def column(self, variant: str) -> np.ndarray:
        """Dosages of one variant, in sample order."""
        if variant not in self:
            raise VariantNotFoundError(f"Variant {variant} not found in genotype matrix.", [variant])
        return self._df[str(variant)].to_numpy(dtype=np.float64, copy=True)

    def columns(self, variants: Iterable[str]) -> np.ndarray:
        """Samples x len(variants) copy of the requested columns only."""
        variants = [str(v) for v in variants]
        missing = [v for v in variants if v not in self._df.columns]
        if missing:
            raise VariantNotFoundError(
                f"{len(missing)} variant(s) not found in genotype matrix: {missing[:5]}", missing
            )
        return self._df.loc[:, variants].to_numpy(dtype=np.float64, copy=True)

    def missing_rate(self) -> pd.Series:
        """Fraction of samples with a missing dosage, per variant."""
        return self._df.isna().mean()
