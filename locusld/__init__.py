"""locusld package

Core modules:
- locusld.locus: Region selection, reference variant picking, down-sampling
- locusld.ld: Pairwise-complete correlation with a reference and all-pairs
- locusld.genotypes: Read-only dosage matrix
- locusld.scan: Locus orchestration, readers and writers
- locusld.viz: Visualization utilities
- locusld.locusld: CLI entry point (main)
"""

__all__ = [
    "locus",
    "ld",
    "genotypes",
    "scan",
    "viz",
    "locusld",
]
