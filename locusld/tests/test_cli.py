import os

import pandas as pd

from ..locusld import build_parser, main


def test_scan_writes_tables_and_plots(gwas_file, geno_file, tmp_path):
    out_dir = os.path.join(tmp_path, "results")

    main([
        "scan", "--summary", gwas_file, "--geno", geno_file,
        "--region", "11:94000000-98000000", "--plot",
        "--out_dir", out_dir, "--out_name", "locus",
    ])

    for suffix in ("r2.csv", "ld.csv", "locus.png", "ldheatmap.png"):
        assert os.path.isfile(os.path.join(out_dir, f"locus.{suffix}"))

    r2_df = pd.read_csv(os.path.join(out_dir, "locus.r2.csv"))
    assert r2_df.loc[r2_df["reference"], "rs"].tolist() == ["rs3"]


def test_lead(gwas_file, tmp_path):
    main(["lead", "--summary", gwas_file, "--out_dir", str(tmp_path), "--out_name", "leads"])

    leads = pd.read_csv(os.path.join(tmp_path, "leads.lead.csv"))
    assert leads["rs"].tolist() == ["rs3", "rs6"]


def test_plot_subcommands(gwas_file, geno_file, tmp_path):
    main([
        "scan", "--summary", gwas_file, "--geno", geno_file,
        "--region", "11:94000000-98000000", "--squared",
        "--out_dir", str(tmp_path), "--out_name", "locus",
    ])

    main(["plot", "ldheatmap", "--ld", os.path.join(tmp_path, "locus.ld.csv"), "--plot_value",
          "--out_dir", str(tmp_path), "--out_name", "heatmap"])
    main(["plot", "locus", "--r2", os.path.join(tmp_path, "locus.r2.csv"),
          "--out_dir", str(tmp_path), "--out_name", "regional"])
    main(["plot", "manhattan", "--summary", gwas_file, "--sig_threshold", "7.3", "--label_leads",
          "--out_dir", str(tmp_path), "--out_name", "manhattan"])

    for name in ("heatmap", "regional", "manhattan"):
        assert os.path.isfile(os.path.join(tmp_path, f"{name}.png"))


def test_parser_defaults():
    args = build_parser().parse_args(["scan", "--summary", "a", "--geno", "b", "--region", "1:1-2"])
    assert args.stat == "logp"
    assert args.max_variants == 100
    assert args.unit == "mb"
    assert not args.squared
