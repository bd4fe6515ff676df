import os

import pytest
import numpy as np
import pandas as pd

from ..errors import EmptyInputError, UndefinedCorrelationError
from ..genotypes import DosageMatrix
from ..locus import Region, select_region
from ..scan import LocusLD


REGION = Region("11", 94_000_000, 98_000_000)


@pytest.fixture
def locus_ld():
    return LocusLD()


@pytest.fixture
def gwas_data(locus_ld, small_gwas):
    return locus_ld.prepare_gwas(small_gwas)


def test_read_gwas_derives_logp(locus_ld, gwas_file):
    df = locus_ld.read_gwas(gwas_file)

    assert len(df) == 6
    assert df["chr"].tolist()[:2] == ["11", "11"]
    assert df.loc[df["rs"] == "rs3", "logp"].iloc[0] == pytest.approx(8.0)


def test_read_gwas_missing_columns(locus_ld, tmp_path):
    filename = os.path.join(tmp_path, "bad.txt")
    pd.DataFrame({"chr": ["1"], "rs": ["a"]}).to_csv(filename, sep="\t", index=False)

    with pytest.raises(ValueError, match="ps"):
        locus_ld.read_gwas(filename)


def test_read_gwas_missing_stat(locus_ld, gwas_file):
    with pytest.raises(ValueError, match="beta"):
        locus_ld.read_gwas(gwas_file, stat="beta")


def test_prepare_gwas(locus_ld):
    df = pd.DataFrame({
        "chr": ["chr1", "chr1", "2"],
        "rs": ["a", "b", "c"],
        "ps": ["100", "x", "300"],
        "p_wald": [0.0, 0.1, 0.01],
    })

    out = locus_ld.prepare_gwas(df)

    assert out["chr"].tolist() == ["1", "2"]
    assert out["ps"].tolist() == [100, 300]
    assert np.isfinite(out["logp"]).all()
    assert out["logp"].iloc[0] > out["logp"].iloc[1]


def test_lead_variants(locus_ld, gwas_data):
    leads = locus_ld.lead_variants(gwas_data)
    assert leads["rs"].tolist() == ["rs3", "rs6"]


def test_process_locus(locus_ld, gwas_data, small_dosages):
    result = locus_ld.process_locus(gwas_data, DosageMatrix(small_dosages), REGION)

    assert result.reference_id == "rs3"
    assert result.variants["rs"].tolist() == ["rs2", "rs3", "rs4", "rs5"]
    r2 = result.variants.set_index("rs")["r2"]
    assert r2["rs3"] == pytest.approx(1.0, abs=1e-9)
    assert r2["rs2"] == pytest.approx(1.0, abs=1e-9)
    assert r2["rs4"] == pytest.approx(1.0, abs=1e-9)
    assert np.isnan(r2["rs5"])
    assert result.variants.set_index("rs")["status"]["rs5"] == "zero_variance"
    assert isinstance(result.correlation.failures["rs5"], UndefinedCorrelationError)

    # Every variant of the LD matrix belongs to the region.
    assert set(result.matrix.ids) <= set(result.variants["rs"])
    assert result.matrix.values.loc["rs3", "rs4"] == pytest.approx(-1.0, abs=1e-9)
    assert result.matrix.labels == ["94.50", "95.00", "96.00", "97.00"]


def test_process_locus_downsamples(locus_ld, gwas_data, small_dosages):
    result = locus_ld.process_locus(gwas_data, DosageMatrix(small_dosages), REGION,
                                    max_variants=2, squared=True)

    assert result.matrix.ids == ["rs2", "rs5"]
    assert result.matrix.squared
    # The r2 vector still covers the whole region.
    assert len(result.variants) == 4


def test_process_locus_drops_ungenotyped(locus_ld, gwas_data, small_dosages):
    genotypes = DosageMatrix(small_dosages.drop(columns=["rs2"]))
    result = locus_ld.process_locus(gwas_data, genotypes, REGION)
    assert result.variants["rs"].tolist() == ["rs3", "rs4", "rs5"]


def test_process_locus_empty_region(locus_ld, gwas_data, small_dosages):
    with pytest.raises(EmptyInputError):
        locus_ld.process_locus(gwas_data, DosageMatrix(small_dosages), Region("3", 1, 100))

    with pytest.raises(EmptyInputError):
        locus_ld.process_locus(gwas_data, DosageMatrix(small_dosages[["rs1"]]), REGION)


def test_save_and_reload(locus_ld, gwas_data, small_dosages, tmp_path):
    result = locus_ld.process_locus(gwas_data, DosageMatrix(small_dosages), REGION)

    r2_path, ld_path = locus_ld.save(result, out_dir=str(tmp_path), out_name="test")

    r2_df = pd.read_csv(r2_path, dtype={"rs": str})
    assert r2_df["rs"].tolist() == ["rs2", "rs3", "rs4", "rs5"]
    assert r2_df.loc[r2_df["reference"], "rs"].tolist() == ["rs3"]
    assert r2_df["r2"].isna().tolist() == [False, False, False, True]

    matrix = locus_ld.read_ld_matrix(ld_path)
    assert matrix.ids == result.matrix.ids
    assert matrix.labels == result.matrix.labels
    assert not matrix.squared
    np.testing.assert_allclose(matrix.values.to_numpy(), result.matrix.values.to_numpy(), atol=1e-6)


def test_prepare_gwas_chr_prefix_any_case(locus_ld):
    df = pd.DataFrame({
        "chr": ["Chr11", "CHR11", "chr12", "X"],
        "rs": ["a", "b", "c", "d"],
        "ps": [95_000_000, 96_000_000, 95_000_000, 10],
        "p_wald": [0.1, 0.01, 0.1, 0.5],
    })

    out = locus_ld.prepare_gwas(df)

    assert out["chr"].tolist() == ["11", "11", "12", "X"]
    assert select_region(out, Region.parse("Chr11:94000000-98000000"))["rs"].tolist() == ["a", "b"]


def test_process_locus_integer_ids(locus_ld):
    gwas = pd.DataFrame({
        "chr": ["11", "11", "11"],
        "rs": [1, 2, 3],
        "ps": [95_000_000, 95_500_000, 96_000_000],
        "logp": [2.0, 5.0, 3.0],
    })
    dosages = pd.DataFrame({
        1: [0, 1, 2, 0, 1, 2],
        2: [0, 1, 2, 1, 1, 2],
        3: [2, 1, 0, 0, 1, 2],
    })

    result = locus_ld.process_locus(gwas, DosageMatrix(dosages), REGION)

    assert result.reference_id == "2"
    assert result.variants["rs"].tolist() == ["1", "2", "3"]
    assert result.variants.set_index("rs")["r2"]["2"] == pytest.approx(1.0)
    assert result.matrix.ids == ["1", "2", "3"]


@pytest.mark.parametrize("squared", [False, True])
def test_reload_keeps_metric_of_positive_matrix(locus_ld, tmp_path, squared):
    gwas = pd.DataFrame({
        "chr": ["11", "11", "11"],
        "rs": ["a", "b", "c"],
        "ps": [95_000_000, 95_500_000, 96_000_000],
        "logp": [2.0, 5.0, 3.0],
    })
    # All pairs positively correlated, so signed r and r2 share a sign
    dosages = pd.DataFrame({
        "a": [0, 1, 2, 0, 1, 2],
        "b": [0, 1, 2, 1, 1, 2],
        "c": [0, 1, 2, 0, 2, 2],
    })
    result = locus_ld.process_locus(gwas, DosageMatrix(dosages), REGION, squared=squared)
    assert np.nanmin(result.matrix.values.to_numpy()) > 0

    _, ld_path = locus_ld.save(result, out_dir=str(tmp_path), out_name="positive")
    matrix = locus_ld.read_ld_matrix(ld_path)

    assert matrix.squared == squared
    np.testing.assert_allclose(matrix.values.to_numpy(), result.matrix.values.to_numpy(), atol=1e-6)


def test_read_ld_matrix_without_metric(locus_ld, tmp_path):
    ld_path = os.path.join(tmp_path, "foreign.ld.csv")
    pd.DataFrame([[1.0, -0.5], [-0.5, 1.0]], index=pd.Index(["a", "b"], name="rs"),
                 columns=["a", "b"]).to_csv(ld_path)

    matrix = locus_ld.read_ld_matrix(ld_path)

    assert not matrix.squared
    assert matrix.labels == []
