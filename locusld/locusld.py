from locusld.scan import LocusLD
from locusld.locus import Region, select_region
from locusld.viz import Visualizer, save_figure
from locusld.log import logger

import argparse
import os

import pandas as pd
import matplotlib.pyplot as plt


def run_lead(args):
    """Report the lead variant of each chromosome."""

    logger.info("Initializing lead variant search...")
    locus_ld = LocusLD()
    gwas_data = locus_ld.read_gwas(args.summary, stat=args.stat)
    leads = locus_ld.lead_variants(gwas_data, stat=args.stat)

    output_path = os.path.join(args.out_dir, f"{args.out_name}.lead.csv")
    leads.to_csv(output_path, index=False, float_format="%.6g")
    logger.info(f"Saved {len(leads)} lead SNPs to {output_path}.")
    logger.info("Done!")


def run_scan(args):
    """Compute LD with the lead variant and the LD matrix of a locus."""

    logger.info("Initializing locus LD analysis...")
    locus_ld = LocusLD()
    region = Region.parse(args.region)

    gwas_data = locus_ld.read_gwas(args.summary, stat=args.stat)
    # Only load genotype columns of variants inside the region
    region_ids = select_region(gwas_data, region)["rs"]
    genotypes = locus_ld.read_genotypes(args.geno, variants=region_ids)

    result = locus_ld.process_locus(
        gwas_data,
        genotypes,
        region,
        stat=args.stat,
        max_variants=args.max_variants,
        unit=args.unit,
        squared=args.squared,
    )
    locus_ld.save(result, out_dir=args.out_dir, out_name=args.out_name)

    if args.plot:
        visualizer = Visualizer()
        fig = plt.figure(figsize=(args.width, args.height))
        ax = fig.add_subplot(111)
        visualizer.plot_locus(result.variants, stat=args.stat, reference=result.reference_id,
                              unit=args.unit, title=f"{result.reference_id} ({region})", ax=ax)
        save_figure(fig, os.path.join(args.out_dir, f"{args.out_name}.locus.{args.format}"))

        if len(result.matrix.ids) > 1:
            fig = plt.figure(figsize=(args.width, args.height))
            ax = fig.add_subplot(111)
            visualizer.plot_ld_heatmap(result.matrix, ax=ax)
            save_figure(fig, os.path.join(args.out_dir, f"{args.out_name}.ldheatmap.{args.format}"))
        else:
            logger.warning("Only one variant in the LD matrix, skipping LD heatmap.")

    logger.info("Done!")


def plot_manhattan(args):
    """Manhattan plot"""

    logger.info("Starting plot subcommand...")
    locus_ld = LocusLD()
    visualizer = Visualizer()

    gwas_df = locus_ld.read_gwas(args.summary, stat=args.stat)
    highlight = None
    if args.label_leads:
        highlight = locus_ld.lead_variants(gwas_df, stat=args.stat)["rs"].tolist()
    fig = plt.figure(figsize=(args.width, args.height))
    ax = fig.add_subplot(111)
    visualizer.plot_manhattan(gwas_df, stat=args.stat, chr_unit=args.chr_unit, chr_colors=args.chr_colors,
                              sig_threshold=args.sig_threshold, point_size=args.point_size,
                              highlight=highlight, ax=ax)
    save_figure(fig, os.path.join(args.out_dir, f"{args.out_name}.{args.format}"))
    logger.info("Plotting completed!")


def plot_locus(args):
    """Regional association plot from a saved r2 table"""

    logger.info("Starting plot subcommand...")
    visualizer = Visualizer()

    r2_df = pd.read_csv(args.r2, dtype={"chr": str, "rs": str})
    if r2_df.empty:
        raise ValueError(f"No variants found in {args.r2}.")
    reference = None
    if "reference" in r2_df.columns and r2_df["reference"].any():
        reference = r2_df.loc[r2_df["reference"], "rs"].iloc[0]
    fig = plt.figure(figsize=(args.width, args.height))
    ax = fig.add_subplot(111)
    visualizer.plot_locus(r2_df, stat=args.stat, reference=reference, unit=args.unit,
                          point_size=args.point_size, ax=ax)
    save_figure(fig, os.path.join(args.out_dir, f"{args.out_name}.{args.format}"))
    logger.info("Plotting completed!")


def plot_ldheatmap(args):
    """LD heatmap from a saved LD matrix"""

    logger.info("Starting plot subcommand...")
    locus_ld = LocusLD()
    visualizer = Visualizer()

    matrix = locus_ld.read_ld_matrix(args.ld)
    fig = plt.figure(figsize=(args.width, args.height))
    ax = fig.add_subplot(111)
    visualizer.plot_ld_heatmap(matrix, plot_value=args.plot_value, cmap=args.cmap, ax=ax)
    save_figure(fig, os.path.join(args.out_dir, f"{args.out_name}.{args.format}"))
    logger.info("Plotting completed!")


def add_output_arguments(parser, out_name="output", width=10, height=6):
    parser.add_argument("--width", type=float, default=width, help="Figure width (default: %(default)s)")
    parser.add_argument("--height", type=float, default=height, help="Figure height (default: %(default)s)")
    parser.add_argument("--format", type=str, default="png", help="Output format, e.g., pdf or png (default: %(default)s)")
    parser.add_argument("--out_dir", type=str, default=".", help="Output directory (default: %(default)s)")
    parser.add_argument("--out_name", type=str, default=out_name, help="Output file name prefix (default: %(default)s)")


def build_parser():
    description = """
    locusld: linkage disequilibrium around GWAS association peaks.
    """

    epilog = """
    Example usage:
    locusld scan --summary gwas.txt --geno dosages.tsv --region 11:94000000-98000000 --out_dir results --plot
    """
    __version__ = "1.0.0"

    parser = argparse.ArgumentParser(
        prog="locusld",
        description=description,
        epilog=epilog,
        formatter_class=argparse.RawDescriptionHelpFormatter  # Preserve formatting
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Subcommands")

    # lead subcommand
    lead_parser = subparsers.add_parser("lead", help="Find the lead variant of each chromosome")
    lead_parser.add_argument("--summary", type=str, required=True, help="Path to GWAS summary statistics txt file. Required columns: chr, rs, ps")
    lead_parser.add_argument("--stat", type=str, default="logp", help="Association statistic column, derived from p_wald when absent (default: %(default)s)")
    lead_parser.add_argument("--out_dir", type=str, default=".", help="Output directory (default: %(default)s)")
    lead_parser.add_argument("--out_name", type=str, default="locusld", help="Output file name prefix (default: %(default)s)")
    lead_parser.set_defaults(func=run_lead)

    # scan subcommand
    scan_parser = subparsers.add_parser("scan", help="Compute LD around the lead variant of a region")
    scan_parser.add_argument("--summary", type=str, required=True, help="Path to GWAS summary statistics txt file. Required columns: chr, rs, ps")
    scan_parser.add_argument("--geno", type=str, required=True, help="Path to genotype dosage file (.tsv, .csv or PLINK .raw), samples as rows")
    scan_parser.add_argument("--region", type=str, required=True, help="Locus as chrom:start-end in base pairs, e.g. 11:94000000-98000000")
    scan_parser.add_argument("--stat", type=str, default="logp", help="Association statistic column used to pick the reference (default: %(default)s)")
    scan_parser.add_argument("--max_variants", type=int, default=100, help="Maximum number of variants in the LD matrix (default: %(default)s)")
    scan_parser.add_argument("--unit", type=str, default="mb", choices=["mb", "kb", "bp"], help="Unit for position labels (default: %(default)s)")
    scan_parser.add_argument("--squared", action="store_true", help="Write r2 instead of signed r in the LD matrix")
    scan_parser.add_argument("--plot", action="store_true", help="Also plot the regional association plot and LD heatmap")
    add_output_arguments(scan_parser, out_name="locusld", height=5)
    scan_parser.set_defaults(func=run_scan)

    # plot subcommand
    plot_parser = subparsers.add_parser("plot", help="Visualize locus results")
    plot_subparsers = plot_parser.add_subparsers(dest="plot_type", help="Plot types")

    manhattan_parser = plot_subparsers.add_parser("manhattan", help="Generate Manhattan plot")
    manhattan_parser.add_argument("--summary", type=str, required=True, help="Path to summary statistics txt file")
    manhattan_parser.add_argument("--stat", type=str, default="logp", help="Association statistic column (default: %(default)s)")
    manhattan_parser.add_argument("--chr_unit", type=str, default="mb", help="Unit for x-axis (default: %(default)s)")
    manhattan_parser.add_argument("--chr_colors", type=str, nargs="+", help="Colors for chromosomes")
    manhattan_parser.add_argument("--sig_threshold", type=float, help="Significance threshold line, on the scale of --stat")
    manhattan_parser.add_argument("--label_leads", action="store_true", help="Label the lead variant of each chromosome")
    manhattan_parser.add_argument("--point_size", type=float, default=5, help="Point size for Manhattan plot (default: %(default)s)")
    add_output_arguments(manhattan_parser, height=3)
    manhattan_parser.set_defaults(plot_func=plot_manhattan)

    locus_parser = plot_subparsers.add_parser("locus", help="Generate regional association plot colored by r2")
    locus_parser.add_argument("--r2", type=str, required=True, help="Path to r2 csv file written by scan")
    locus_parser.add_argument("--stat", type=str, default="logp", help="Association statistic column (default: %(default)s)")
    locus_parser.add_argument("--unit", type=str, default="mb", choices=["mb", "kb", "bp"], help="Unit for x-axis (default: %(default)s)")
    locus_parser.add_argument("--point_size", type=float, default=20, help="Point size (default: %(default)s)")
    add_output_arguments(locus_parser, height=5)
    locus_parser.set_defaults(plot_func=plot_locus)

    ldheatmap_parser = plot_subparsers.add_parser("ldheatmap", help="Generate LD heatmap")
    ldheatmap_parser.add_argument("--ld", type=str, required=True, help="Path to LD matrix csv file written by scan")
    ldheatmap_parser.add_argument("--plot_value", action="store_true", help="Whether to plot values in LD heatmap (default: %(default)s)")
    ldheatmap_parser.add_argument("--cmap", type=str, help="Colormap for LD heatmap (default: Reds for r2, RdBu_r for r)")
    add_output_arguments(ldheatmap_parser, height=8)
    ldheatmap_parser.set_defaults(plot_func=plot_ldheatmap)

    return parser


def main(argv=None):
    parser = build_parser()

    # Parse arguments and execute the corresponding subcommand
    args = parser.parse_args(argv)
    if args.command:
        # Create output directory if it doesn't exist
        if hasattr(args, "out_dir"):
            os.makedirs(args.out_dir, exist_ok=True)
        if hasattr(args, 'plot_func'):
            args.plot_func(args)
        elif hasattr(args, 'func'):
            args.func(args)
        else:
            parser.print_help()
    else:
        parser.print_help()

if __name__ == "__main__":
    main()
