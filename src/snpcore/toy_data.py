from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, Sequence

import pysam

from .utils import ensure_outdir, write_json

TOY_SAMPLES = ("S1", "S2", "S3")
TOY_CONTIG = "chr1"

# (pos, ref, alts, qual, info, calls); calls hold one (GT index, DP, RO, AO)
# per sample, or None for a no-call. The comment names the expected outcome
# with default thresholds (min depth 10, min fraction 0.9, min QUAL 100).
TOY_SITES = [
    (10, "G", ("A",), 500, {"NUMALT": 1, "TYPE": ("snp",)},
     [(1, 20, 1, 19), (0, 25, 25, 0), (1, 30, 0, 30)]),  # core
    (20, "C", (), 0, {"NUMALT": 0},
     [(0, 20, 20, None), (0, 20, 20, None), (0, 20, 20, None)]),  # no_variant
    (30, "T", ("C",), 50, {"NUMALT": 1, "TYPE": ("snp",)},
     [(1, 20, 0, 20), (0, 20, 20, 0), (1, 20, 0, 20)]),  # low_qual
    (40, "A", ("T",), 300, {"NUMALT": 0, "TYPE": ("snp",)},
     [(1, 20, 0, 20), (0, 20, 20, 0), (1, 20, 0, 20)]),  # zero_alt
    (50, "AC", ("GC", "TT"), 400, {"NUMALT": 2, "TYPE": ("snp", "mnp")},
     [(1, 20, 0, (20, 0)), (0, 20, 20, (0, 0)), (2, 20, 0, (0, 20))]),  # allele_class
    (60, "AT", ("A",), 400, {"NUMALT": 1, "TYPE": ("del",)},
     [(1, 20, 0, 20), (0, 20, 20, 0), (1, 20, 0, 20)]),  # allele_class
    (70, "AC", ("GT",), 400, {"NUMALT": 1, "TYPE": ("mnp",)},
     [(1, 20, 0, 20), (0, 20, 20, 0), (1, 22, 1, 21)]),  # core
    (80, "G", ("T",), 400, {"NUMALT": 1, "TYPE": ("snp",)},
     [(1, 20, 0, 20), (0, 8, 8, 0), (1, 20, 0, 20)]),  # low_depth
    (90, "C", ("A",), 400, {"NUMALT": 1, "TYPE": ("snp",)},
     [(1, 20, 0, 20), (0, 20, 20, 0), (1, 20, 10, 10)]),  # low_fraction
    (100, "T", ("G",), 400, {"NUMALT": 1, "TYPE": ("snp",)},
     [(1, 20, 0, 20), None, (1, 20, 0, 20)]),  # no_call
    (110, "C", ("T",), 400, {"NUMALT": 1, "TYPE": ("snp",)},
     [(1, 20, 0, 20), (1, 20, 0, 20), (1, 20, 0, 20)]),  # core
    (120, "A", ("CG",), 400, {"NUMALT": 1, "TYPE": ("snp",)},
     [(1, 20, 0, 20), (0, 20, 20, 0), (1, 20, 0, 20)]),  # allele_length
]


def toy_header(samples: Sequence[str] = TOY_SAMPLES, *, contig: str = TOY_CONTIG) -> pysam.VariantHeader:
    """freebayes-style header: INFO NUMALT/TYPE, FORMAT GT:DP:RO:AO."""
    header = pysam.VariantHeader()
    header.add_meta("fileformat", "VCFv4.2")
    header.add_meta("source", "snpcore-toy")
    for sample in samples:
        header.add_sample(sample)
    header.contigs.add(contig, length=1000)
    header.info.add("NUMALT", number=1, type="Integer", description="Number of unique non-reference alleles")
    header.info.add("TYPE", number="A", type="String", description="Allele type: snp, mnp, ins, del, complex")
    header.formats.add("GT", number=1, type="String", description="Genotype")
    header.formats.add("DP", number=1, type="Integer", description="Read depth")
    header.formats.add("RO", number=1, type="Integer", description="Reference allele observations")
    header.formats.add("AO", number="A", type="Integer", description="Alternate allele observations")
    return header


def write_vcf(
    path: str | Path,
    sites: Iterable[tuple] = TOY_SITES,
    *,
    samples: Sequence[str] = TOY_SAMPLES,
    contig: str = TOY_CONTIG,
) -> Path:
    """Write ``sites`` (shaped like :data:`TOY_SITES`) as an uncompressed VCF."""
    path = Path(path)
    with pysam.VariantFile(str(path), "w", header=toy_header(samples, contig=contig)) as vcf:
        for pos, ref, alts, qual, info, calls in sites:
            rec = vcf.new_record(
                contig=contig,
                start=pos - 1,
                stop=pos - 1 + len(ref),
                alleles=(ref, *alts),
                qual=qual,
            )
            for key, value in info.items():
                rec.info[key] = value
            for i, call in enumerate(calls):
                if call is None:
                    continue
                gt, dp, ro, ao = call
                values = rec.samples[i]
                if gt is not None:
                    values["GT"] = (gt,)
                values["DP"] = dp
                values["RO"] = ro
                if ao is not None:
                    values["AO"] = ao if isinstance(ao, tuple) else (ao,)
            vcf.write(rec)
    return path


def make_toy_data(*, outdir: str | Path) -> Dict[str, str]:
    """Create a tiny multi-sample VCF suitable for quick demos/tests.

    The outputs include:
    - toy.vcf.gz (+ .tbi)

    With default thresholds three of the twelve records are core sites
    (chr1:10, chr1:70, chr1:110), giving four core bases.

    Returns
    -------
    dict
        Paths to the generated files.
    """
    outdir_p = ensure_outdir(outdir)

    vcf_path = write_vcf(outdir_p / "toy.vcf")

    vcf_gz = outdir_p / "toy.vcf.gz"
    pysam.tabix_compress(str(vcf_path), str(vcf_gz), force=True)
    pysam.tabix_index(str(vcf_gz), preset="vcf", force=True)

    summary = {
        "vcf": str(vcf_gz),
        "samples": ",".join(TOY_SAMPLES),
        "outdir": str(outdir_p),
    }

    write_json(outdir_p / "toy_summary.json", summary)
    return summary
