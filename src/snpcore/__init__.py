"""snpcore: core-genome SNP/MNP alignments from multi-sample VCFs.

Public API is intentionally small; most users should use the CLI:

    snpcore core --vcf calls.vcf.gz --prefix core --outdir results/

"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.3.0"
