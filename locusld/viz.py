import numpy as np
import pandas as pd
import matplotlib as mpl
mpl.use('Agg')
import matplotlib.pyplot as plt
from matplotlib import axes
from matplotlib.patches import Patch, RegularPolygon
from matplotlib.collections import PatchCollection

from locusld.ld import CorrelationMatrix
from locusld.locus import UNIT_FACTORS
from locusld.log import logger
from typing import List, Optional, Union


# r2 bins and colors used for regional association plots
R2_BINS = [0, 0.2, 0.4, 0.6, 0.8, 1.0]
R2_COLORS = ["#357EBD", "#46B8DA", "#5CB85C", "#EEA236", "#D43F3A"]
MISSING_R2_COLOR = "#B8B0C3"


class Visualizer:
    def __init__(self):
        pass

    def plot_locus(
            self,
            df: pd.DataFrame,
            stat: str = "logp",
            reference: Optional[str] = None,
            unit: str = "mb",
            point_size: float = 20,
            title: Optional[str] = None,
            ax: axes.Axes = None):
        """
        Plot a regional association plot colored by LD with the reference variant.

        :param df: DataFrame with columns rs, chr, ps, r2 and the statistic column.
        :param stat: Association statistic on the y-axis.
        :param reference: Reference variant id, highlighted as a diamond.
        :param unit: Position unit, one of ['mb', 'kb', 'bp'].
        :param point_size: Marker size.
        :param title: Title of the plot.
        :param ax: Matplotlib Axes object for plotting.
        """
        logger.info("Plotting regional association plot...")
        if ax is None:
            raise ValueError("Please provide a valid Matplotlib Axes object for plotting.")
        factor = UNIT_FACTORS.get(unit.lower(), 1e-6)
        x = df["ps"].to_numpy(dtype=np.float64) * factor
        y = df[stat].to_numpy(dtype=np.float64)
        r2 = df["r2"].to_numpy(dtype=np.float64)

        # Variants without r2 are drawn first, underneath the others
        no_ld = np.isnan(r2)
        ax.scatter(x[no_ld], y[no_ld], color=MISSING_R2_COLOR, s=point_size, edgecolors="none")
        bins = np.digitize(r2[~no_ld], R2_BINS[1:-1])
        colors = np.asarray(R2_COLORS)[bins]
        ax.scatter(x[~no_ld], y[~no_ld], c=colors, s=point_size, edgecolors="none")

        if reference is not None:
            is_ref = (df["rs"] == reference).to_numpy()
            if is_ref.any():
                ax.scatter(x[is_ref], y[is_ref], marker="D", color="#7D26CD", s=point_size * 2.5, zorder=10)
                ax.annotate(reference, (x[is_ref][0], y[is_ref][0]), xytext=(5, 5),
                            textcoords="offset points", fontsize=8)

        handles = [Patch(color=c, label=f"{lo:.1f}-{hi:.1f}")
                   for c, lo, hi in zip(R2_COLORS, R2_BINS[:-1], R2_BINS[1:])]
        ax.legend(handles=handles[::-1], title=r"$r^2$", loc="upper right", frameon=False, fontsize=8)

        ax.spines[['top', 'right']].set_visible(False)
        chrom = df["chr"].iloc[0] if len(df) else ""
        ax.set_xlabel(f"Chromosome {chrom} ({unit.upper()})")
        ax.set_ylabel(r"$-\log_{10}(p)$" if stat == "logp" else stat)
        if title is not None:
            ax.set_title(title)

    def plot_ld_heatmap(
            self,
            ld: Union[CorrelationMatrix, pd.DataFrame],
            labels: Optional[List[str]] = None,
            squared: Optional[bool] = None,
            plot_value: bool = False,
            cmap=None,
            ax=None):
        """
        Plot a triangular LD heatmap.

        :param ld: Correlation matrix (square, symmetric).
        :param labels: Axis labels, one per variant. Taken from ``ld`` when omitted.
        :param squared: Whether values are r2 in [0, 1] rather than signed r.
        :param plot_value: Whether to plot values in heatmap.
        :param cmap: Colormap for LD heatmap.
        :param ax: Matplotlib Axes object for plotting.
        """
        logger.info("Plotting LD heatmap...")
        if ax is None:
            raise ValueError("Please provide a valid Matplotlib Axes object for plotting.")

        if isinstance(ld, CorrelationMatrix):
            labels = labels if labels is not None else ld.labels
            squared = ld.squared if squared is None else squared
            ld = ld.values
        ld_matrix = np.asarray(ld, dtype=np.float64)
        if squared is None:
            squared = bool(np.nanmin(ld_matrix) >= 0)
        n_snps = ld_matrix.shape[0]
        if n_snps < 2:
            raise ValueError("At least two variants are required for an LD heatmap.")

        # Set colormap
        if cmap is None:
            cmap = 'Reds' if squared else 'RdBu_r'
        cmap = mpl.colormaps.get_cmap(cmap)
        norm = mpl.colors.Normalize(vmin=0 if squared else -1, vmax=1)

        # Get patch collection to plot
        patches = []
        values = []
        start = 1
        stop = n_snps
        for i in np.arange(start, stop):
            diag_values = np.diag(ld_matrix, -i)
            values.extend(diag_values)
            for j in np.arange(0.5, len(diag_values) + 0.5):
                patches.append(RegularPolygon((j + i * 0.5, (n_snps - i) / 2), numVertices=4, radius=0.5))

        patch_collection = PatchCollection(patches)
        patch_collection.set_array(np.ma.masked_invalid(values))
        patch_collection.set_cmap(cmap)
        patch_collection.set_norm(norm)

        ax.add_collection(patch_collection)
        ax.set_aspect('equal')
        ax.set_xlim(start * 0.5, stop - start * 0.5)
        ax.set_ylim(-0.1, (n_snps - start) / 2 + 0.5 + 0.1)
        ax.spines[['top', 'right', 'left']].set_visible(False)
        ax.set_yticks([])

        # Variant labels along the base of the triangle
        if labels:
            ax.set_xticks(np.arange(n_snps) + 0.5, labels, rotation=90, fontsize=6)
        else:
            ax.set_xticks([])

        # Add color bar
        cax = ax.inset_axes([0.8, 0.4, 0.03, 0.5])
        ax.figure.colorbar(mpl.cm.ScalarMappable(norm=norm, cmap=cmap), cax=cax,
                           label=r"$r^2$" if squared else r"$r$")

        # Add text annotations if plot_value is True
        if plot_value:
            logger.info("Adding text annotations to the heatmap...")
            for p, value in zip(patches, values):
                if np.isnan(value):
                    continue
                ax.text(p.xy[0], p.xy[1], "{:.2f}".format(value), ha="center", va="center",
                        fontsize=6, color="white" if abs(value) > 0.5 else "black")

    def plot_manhattan(self, df, stat="logp", point_size=5,
                       chr_unit='mb', chr_colors=None,
                       sig_threshold=None, highlight=None,
                       xlabel=None, ylabel=None, title=None, ax=None):
        """
        Plot Manhattan plot for GWAS summary statistics.

        :param df: DataFrame containing summary statistics (columns: chr, ps and stat)
        :param stat: Association statistic on the y-axis, typically -log10(p)
        :param point_size: Point size for Manhattan plot
        :param chr_unit: Position unit, one of ['mb', 'kb', 'bp']
        :param chr_colors: List of colors for chromosomes, cycled when shorter than the chromosomes
        :param sig_threshold: Threshold line, on the same scale as stat
        :param highlight: Variant ids to label, e.g. lead variants
        :param xlabel: X-axis label
        :param ylabel: Y-axis label
        :param title: Title of the plot
        :param ax: Matplotlib Axes object for plotting
        """
        logger.info("Plotting Manhattan plot...")
        if ax is None:
            raise ValueError("Please provide a valid Matplotlib Axes object for plotting.")
        factor = UNIT_FACTORS.get(chr_unit.lower(), 1e-6)
        df = df.copy()
        df["plot_pos"] = df["ps"] * factor

        # sort chromosomes naturally, numeric names first
        chroms = sorted(df["chr"].unique(), key=lambda c: (0, int(c), "") if str(c).isdigit() else (1, 0, str(c)))

        if chr_colors is None:
            chr_colors = ["#B8B0C3", "#38638D"]

        chrom_center = {}
        current_pos = 0
        for i, chrom in enumerate(chroms):
            group = df[df["chr"] == chrom]
            offset = current_pos
            chrom_center[chrom] = offset + group["plot_pos"].max() / 2
            ax.scatter(group["plot_pos"] + offset, group[stat], color=chr_colors[i % len(chr_colors)], s=point_size)
            df.loc[group.index, "plot_pos"] = group["plot_pos"] + offset
            current_pos += group["plot_pos"].max()

        if sig_threshold is not None:
            ax.axhline(sig_threshold, color='gray', linestyle='--', linewidth=1, label=f"Threshold {sig_threshold:.3g}")
            ax.legend(loc="upper right", frameon=False)
        else:
            logger.info("No significance threshold provided; skipping threshold line.")

        if highlight is not None:
            for _, row in df[df["rs"].isin(list(highlight))].iterrows():
                ax.annotate(row["rs"], (row["plot_pos"], row[stat]), xytext=(0, 5),
                            textcoords="offset points", ha="center", fontsize=7)

        ax.set_xticks(list(chrom_center.values()), list(chrom_center.keys()))
        ax.tick_params(axis='x', which='major', rotation=90)
        ax.spines[['top', 'right']].set_visible(False)
        ax.set_xlabel(xlabel if xlabel is not None else f"Chromosome Position ({chr_unit.upper()})")
        ax.set_ylabel(ylabel if ylabel is not None else (r"$-\log_{10}(p)$" if stat == "logp" else stat))
        ax.set_xlim(0, current_pos)
        ax.set_title(title if title is not None else "Manhattan Plot")


def save_figure(fig, path: str):
    fig.tight_layout()
    fig.savefig(path, dpi=300, bbox_inches="tight")
    plt.close(fig)
    logger.info(f"Saved figure to {path}.")
