from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, TextIO

import pysam

from .filters import site_class
from .models import CoreConfig, CoreSite
from .utils import ensure_outdir

if TYPE_CHECKING:
    from .core import AlignmentBuffer

logger = logging.getLogger(__name__)

GFF_SOURCE = "snpcore"
GFF_TYPE = "variation"
LINE_WIDTH = 60

OUTPUT_SUFFIXES = ("vcf", "bed", "gff", "tab", "aln", "nex")


def output_paths(outdir: str | Path, prefix: str) -> Dict[str, Path]:
    outdir = Path(outdir)
    return {ext: outdir / f"{prefix}.{ext}" for ext in OUTPUT_SUFFIXES}


def _wrap(seq: str, width: int = LINE_WIDTH) -> List[str]:
    return [seq[i : i + width] for i in range(0, len(seq), width)]


class CoreWriter:
    """Writes every per-site artifact in step, plus the alignments at the end.

    All per-site rows for one core site share its position, end position and
    label. The filtered VCF is opened by :meth:`write_header`, since it takes
    the input's header unchanged.
    """

    def __init__(self, outdir: str | Path, prefix: str, config: CoreConfig) -> None:
        self.outdir = ensure_outdir(outdir)
        self.prefix = prefix
        self.config = config
        self.paths = output_paths(self.outdir, prefix)
        self._vcf: Optional[pysam.VariantFile] = None
        self._fh: Dict[str, TextIO] = {}
        for ext in ("bed", "gff", "tab"):
            self._fh[ext] = open(self.paths[ext], "wt", encoding="utf-8")
        self._fh["gff"].write("##gff-version 3\n")
        self.sample_names: List[str] = []
        self.rows_written = 0

    def __enter__(self) -> "CoreWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        if self._vcf is not None:
            self._vcf.close()
            self._vcf = None
        for fh in self._fh.values():
            fh.close()
        self._fh = {}

    def write_header(self, header: pysam.VariantHeader, sample_names: Sequence[str]) -> None:
        self._vcf = pysam.VariantFile(str(self.paths["vcf"]), "w", header=header)
        self.sample_names = list(sample_names)
        cols = ["#SEQ", "POS", "TYPE"]
        cols += self.sample_names
        cols += [f"{name}_EVIDENCE" for name in self.sample_names]
        cols.append("FEATURE")
        self._fh["tab"].write("\t".join(cols) + "\n")

    def write_site(self, core: CoreSite) -> None:
        site = core.site
        label = core.label(self.prefix)

        if self._vcf is None:
            raise RuntimeError("write_header() must be called before write_site()")
        self._vcf.write(site.record)
        self._fh["bed"].write(f"{site.chrom}\t{site.pos - 1}\t{site.end}\t{label}\n")
        self._fh["gff"].write(
            f"{site.chrom}\t{GFF_SOURCE}\t{GFF_TYPE}\t{site.pos}\t{site.end}\t.\t.\t.\t"
            f"ID={label};product={core.alleles}\n"
        )
        row = [site.chrom, str(site.pos), site_class(site)]
        row += [c.allele for c in core.calls]
        row += [c.evidence for c in core.calls]
        row.append("")
        self._fh["tab"].write("\t".join(row) + "\n")
        self.rows_written += 1

    def finalize(self, rows: Sequence["AlignmentBuffer"]) -> None:
        """Close per-site streams and write the FASTA and NEXUS alignments."""
        self.close()
        seqs = [(row.name, row.sequence()) for row in rows]
        write_fasta(self.paths["aln"], seqs)
        write_nexus(
            self.paths["nex"],
            seqs,
            missing=self.config.missing_char,
            gap=self.config.gap_char,
        )
        logger.info("Wrote %d core sites to %s.*", self.rows_written, self.outdir / self.prefix)


def write_fasta(path: str | Path, seqs: Sequence[tuple]) -> None:
    with open(path, "wt", encoding="utf-8") as fh:
        for name, seq in seqs:
            fh.write(f">{name}\n")
            for chunk in _wrap(seq):
                fh.write(chunk + "\n")


def write_nexus(
    path: str | Path,
    seqs: Sequence[tuple],
    *,
    missing: str,
    gap: str,
    width: int = LINE_WIDTH,
) -> None:
    """Write an interleaved NEXUS DATA block."""
    ntax = len(seqs)
    nchar = len(seqs[0][1]) if seqs else 0
    pad = max((len(name) for name, _ in seqs), default=0) + 2

    with open(path, "wt", encoding="utf-8") as fh:
        fh.write("#NEXUS\n")
        fh.write("begin data;\n")
        fh.write(f"  dimensions ntax={ntax} nchar={nchar};\n")
        fh.write(f"  format datatype=dna missing={missing} gap={gap} interleave=yes;\n")
        fh.write("  matrix\n")
        starts = list(range(0, nchar, width)) or [0]
        for i, start in enumerate(starts):
            if i > 0:
                fh.write("\n")
            for name, seq in seqs:
                fh.write(f"{name.ljust(pad)}{seq[start : start + width]}\n")
        fh.write("  ;\n")
        fh.write("end;\n")


def index_vcf(vcf_path: str | Path, *, keep_plain: bool = False) -> Path:
    """bgzip-compress and tabix-index a finished VCF; returns the ``.vcf.gz`` path."""
    vcf_path = Path(vcf_path)
    vcf_gz = vcf_path.with_suffix(vcf_path.suffix + ".gz")
    logger.info("Compressing and indexing %s", vcf_path)
    pysam.tabix_compress(str(vcf_path), str(vcf_gz), force=True)
    pysam.tabix_index(str(vcf_gz), preset="vcf", force=True)
    if not keep_plain:
        vcf_path.unlink()
    return vcf_gz
