import os

import pytest
import numpy as np
import pandas as pd


SAMPLES = [f"s{i}" for i in range(1, 9)]


def get_small_gwas():
    # rs3 is the strongest hit on chromosome 11, rs6 on chromosome 12.
    return pd.DataFrame({
        "chr": ["11", "11", "11", "11", "11", "12"],
        "rs": ["rs1", "rs2", "rs3", "rs4", "rs5", "rs6"],
        "ps": [93_000_000, 94_500_000, 95_000_000, 96_000_000, 97_000_000, 95_000_000],
        "p_wald": [1e-3, 1e-6, 1e-8, 1e-4, 0.5, 1e-9],
    })


def get_small_dosages():
    nan = np.nan
    return pd.DataFrame(
        {
            "rs1": [0, 1, 2, 0, 1, 2, 0, 1],
            "rs2": [0, 0, 1, 1, 2, 2, 0, 1],
            "rs3": [0, 0, 1, 1, 2, 2, 0, 1],
            # Perfectly anti-correlated with rs3 where observed.
            "rs4": [2, 2, 1, 1, 0, 0, 2, nan],
            # Monomorphic, so its correlation is undefined.
            "rs5": [1, 1, 1, 1, 1, 1, 1, 1],
            "rs6": [0, 1, 0, 1, 0, 1, 0, 1],
        },
        index=pd.Index(SAMPLES, name="sample"),
        dtype=np.float64,
    )


@pytest.fixture
def small_gwas():
    return get_small_gwas()


@pytest.fixture
def small_dosages():
    return get_small_dosages()


@pytest.fixture
def gwas_file(tmp_path):
    filename = os.path.join(tmp_path, "gwas.assoc.txt")
    get_small_gwas().to_csv(filename, sep="\t", index=False)
    return filename


@pytest.fixture
def geno_file(tmp_path):
    filename = os.path.join(tmp_path, "dosages.tsv")
    get_small_dosages().to_csv(filename, sep="\t", na_rep="NA")
    return filename
