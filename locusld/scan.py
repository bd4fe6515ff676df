import os
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd

from locusld.errors import EmptyInputError
from locusld.genotypes import DosageMatrix
from locusld.ld import (
    CorrelationMatrix,
    ReferenceCorrelation,
    correlate_with_reference,
    correlation_matrix,
)
from locusld.locus import Region, downsample, pick_reference, position_labels, select_region
from locusld.log import logger


@dataclass
class LocusResult:
    """Everything computed for one locus."""

    region: Region
    variants: pd.DataFrame
    reference: pd.Series
    correlation: ReferenceCorrelation
    matrix: CorrelationMatrix

    @property
    def reference_id(self) -> str:
        return str(self.reference["rs"])


class LocusLD:
    def __init__(self):
        """
        Initialize the locus LD analysis class.
        """
        self.required_columns = ["chr", "rs", "ps"]

    def read_gwas(self, gwas_file: str, chunksize: int = 100000, stat: Optional[str] = None):
        """
        Read GWAS summary statistics and check if the required columns exist.

        :param gwas_file: Path to tab-separated GWAS results file
        :param chunksize: Chunk size for reading files
        :param stat: Association statistic column that must be present. A
            ``logp`` column is derived from ``p_wald`` when missing.
        """
        logger.info("Loading GWAS data...")
        if not os.path.isfile(gwas_file):
            raise FileNotFoundError(f"GWAS file not found: {gwas_file}")

        chunks = []
        for chunk in pd.read_csv(gwas_file, sep="\t", chunksize=chunksize, dtype={"chr": str, "rs": str}):
            missing_columns = set(self.required_columns) - set(chunk.columns)
            if missing_columns:
                raise ValueError(
                    f"The GWAS file is missing the following required columns: {sorted(missing_columns)}. "
                    f"Please ensure the file contains columns: {self.required_columns}."
                )
            chunks.append(chunk)

        # Combine chunks into a single DataFrame
        df = pd.concat(chunks, ignore_index=True) if chunks else pd.DataFrame(columns=self.required_columns)
        df = self.prepare_gwas(df)
        if stat is not None and stat not in df.columns:
            raise ValueError(f"Association statistic column '{stat}' not found in {gwas_file}.")
        logger.info(f"Loaded {len(df)} GWAS SNPs.")
        return df

    def prepare_gwas(self, df: pd.DataFrame) -> pd.DataFrame:
        """Normalize column types and derive ``logp`` from ``p_wald``."""
        df = df.copy()
        df["chr"] = df["chr"].astype(str).str.replace(r"(?i)^chr", "", regex=True)
        df["rs"] = df["rs"].astype(str)
        df["ps"] = pd.to_numeric(df["ps"], errors="coerce")
        n_bad = int(df["ps"].isna().sum())
        if n_bad:
            logger.warning(f"Dropping {n_bad} SNPs with a missing or invalid position.")
            df = df.dropna(subset=["ps"])
        df["ps"] = df["ps"].astype(np.int64)
        if "p_wald" in df.columns and "logp" not in df.columns:
            pvalues = pd.to_numeric(df["p_wald"], errors="coerce")
            # p-values reported as 0 are floored to the smallest positive double
            df["logp"] = -np.log10(pvalues.clip(lower=np.finfo(np.float64).tiny))
        return df.reset_index(drop=True)

    def read_genotypes(self, geno_file: str, variants=None) -> DosageMatrix:
        """
        Read a dosage matrix, only keeping the given variants.

        :param geno_file: Path to genotype dosage file
        :param variants: Iterable of variant ids to load, all when None
        """
        return DosageMatrix.from_file(geno_file, variants=variants)

    def lead_variants(self, gwas_data: pd.DataFrame, stat: str = "logp") -> pd.DataFrame:
        """
        Find the lead variant of each chromosome.

        :param gwas_data: GWAS summary statistics
        :param stat: Association statistic column
        """
        leads = []
        for chrom, group in gwas_data.groupby("chr", sort=False):
            try:
                leads.append(pick_reference(group, stat=stat))
            except EmptyInputError:
                logger.warning(f"No SNP with a valid '{stat}' on chromosome {chrom}, skipping.")
        logger.info(f"Found {len(leads)} lead SNPs.")
        if not leads:
            return gwas_data.iloc[0:0]
        return pd.DataFrame(leads).reset_index(drop=True)

    def process_locus(
        self,
        gwas_data: pd.DataFrame,
        genotypes: DosageMatrix,
        region: Region,
        stat: str = "logp",
        max_variants: int = 100,
        unit: str = "mb",
        squared: bool = False,
    ) -> LocusResult:
        """
        Compute LD with the lead variant and the LD matrix of a region.

        :param gwas_data: GWAS summary statistics
        :param genotypes: Dosage matrix covering the region variants
        :param region: Locus to analyse
        :param stat: Association statistic used to pick the reference
        :param max_variants: Maximum number of variants in the LD matrix
        :param unit: Position unit of the matrix labels
        :param squared: Whether the LD matrix holds r2 instead of signed r
        """
        logger.info(f"Processing locus {region}...")
        # Genotype columns are keyed by string ids
        gwas_data = gwas_data.assign(rs=gwas_data["rs"].astype(str))
        variants = select_region(gwas_data, region)
        if variants.empty:
            raise EmptyInputError(f"No variants found in region {region}.")

        genotyped = variants["rs"].isin(genotypes.variants)
        if not genotyped.all():
            logger.warning(
                f"Dropping {int((~genotyped).sum())} region variants without genotypes, "
                f"e.g. {', '.join(variants.loc[~genotyped, 'rs'].head(5))}."
            )
            variants = variants.loc[genotyped].reset_index(drop=True)
        if variants.empty:
            raise EmptyInputError(f"No genotyped variants found in region {region}.")

        reference = pick_reference(variants, stat=stat)
        reference_id = str(reference["rs"])
        missing = genotypes.missing_rate()[reference_id]
        logger.info(
            f"Reference variant: {reference_id} at {reference['ps']} ({stat} = {reference[stat]:.3g}, "
            f"missing rate {missing:.1%})."
        )

        ids = variants["rs"].tolist()
        correlation = correlate_with_reference(
            genotypes.column(reference_id),
            genotypes.columns(ids),
            ids,
            reference_id,
            errors="collect",
        )
        for variant, err in correlation.failures.items():
            logger.warning(f"LD between {reference_id} and {variant} not computed: {err}")

        subset = downsample(variants, max_variants)
        sub_ids = subset["rs"].tolist()
        logger.info(f"Calculating LD matrix for {len(sub_ids)} SNPs...")
        matrix = correlation_matrix(
            genotypes.columns(sub_ids),
            sub_ids,
            squared=squared,
            errors="collect",
            labels=position_labels(subset["ps"], unit=unit),
        )
        logger.info("LD calculation completed.")

        variants = variants.copy()
        variants["r2"] = variants["rs"].map(correlation.r2)
        variants["status"] = [
            correlation.failures[v].status if v in correlation.failures else "ok" for v in ids
        ]
        return LocusResult(
            region=region,
            variants=variants,
            reference=reference,
            correlation=correlation,
            matrix=matrix,
        )

    def save(self, result: LocusResult, out_dir: str = ".", out_name: str = "locusld"):
        """
        Save the per-variant r2 table and the LD matrix.

        :param result: Output of process_locus
        :param out_dir: Output directory
        :param out_name: Output file name prefix
        """
        r2_path = os.path.join(out_dir, out_name + ".r2.csv")
        table = result.variants.copy()
        table["reference"] = table["rs"] == result.reference_id
        table.to_csv(r2_path, index=False, float_format="%.6g", na_rep="NA")
        logger.info(f"Saved r2 with {result.reference_id} for {len(table)} SNPs to {r2_path}.")

        ld_path = os.path.join(out_dir, out_name + ".ld.csv")
        result.matrix.to_frame().to_csv(ld_path, float_format="%.6g", na_rep="NA")
        logger.info(f"Saved {len(result.matrix.ids)}x{len(result.matrix.ids)} LD matrix to {ld_path}.")
        return r2_path, ld_path

    def read_ld_matrix(self, ld_file: str) -> CorrelationMatrix:
        """
        Read an LD matrix written by save.

        :param ld_file: Path to LD matrix csv file
        """
        logger.info(f"Loading LD matrix from {ld_file}...")
        df = pd.read_csv(ld_file, index_col="rs", dtype={"rs": str, "label": str, "metric": str})
        labels = df.pop("label").tolist() if "label" in df.columns else []
        metric = df.pop("metric").iloc[0] if "metric" in df.columns and len(df) else None
        df.columns = df.columns.astype(str)
        df.index = df.index.astype(str)
        values = df.to_numpy(dtype=np.float64)
        if metric is not None:
            squared = metric == "r2"
        else:
            # Files without a metric column: r2 never goes below zero
            squared = bool(np.nanmin(values) >= 0) if values.size else False
        return CorrelationMatrix(values=df, squared=squared, labels=labels)
