"""Typed views over ``pysam.VariantFile`` records.

No filtering happens here: each record becomes a :class:`VariantSite` plus
its per-sample FORMAT values, and a sample's values are turned into a typed
:class:`SampleEvidence` on request. Values pysam cannot give a usable type to
raise :class:`RecordFormatError` instead of being silently defaulted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

import pysam

from .models import SampleEvidence, VariantSite

logger = logging.getLogger(__name__)

MISSING = "."


class RecordFormatError(ValueError):
    """Raised when a VCF record does not carry the values core calling needs."""

    def __init__(self, message: str, *, where: Optional[str] = None) -> None:
        if where is not None:
            message = f"{where}: {message}"
        super().__init__(message)
        self.where = where


@dataclass(frozen=True)
class ParsedRecord:
    site: VariantSite
    samples: Sequence[Mapping[str, Any]]  # indexed by header column


def _info_value(value: Any) -> Optional[str]:
    if value is True:
        return None  # flag
    if isinstance(value, (tuple, list)):
        return ",".join(MISSING if v is None else str(v) for v in value)
    return str(value)


def info_dict(rec: pysam.VariantRecord) -> Dict[str, Optional[str]]:
    """INFO values as text, in record order."""
    return {key: _info_value(value) for key, value in rec.info.items()}


def parse_record(rec: pysam.VariantRecord) -> ParsedRecord:
    """Wrap one pysam record as a :class:`ParsedRecord`."""
    site = VariantSite(
        chrom=rec.contig,
        pos=rec.pos,
        ref=rec.ref.upper(),
        alts=tuple(a.upper() for a in rec.alts) if rec.alts else (),
        qual=rec.qual,
        info=info_dict(rec),
        fmt=tuple(rec.format.keys()),
        record=rec,
    )
    return ParsedRecord(site=site, samples=rec.samples)


def iter_records(vcf: pysam.VariantFile) -> Iterator[ParsedRecord]:
    for rec in vcf:
        yield parse_record(rec)


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (tuple, list)):
        return all(v is None for v in value)
    return value == MISSING


def decode_sample(sample: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """FORMAT values of one sample, keyed by tag.

    A sample whose every value is missing (a bare ``.`` field) is a no-call
    and decodes to None.
    """
    tags = dict(sample.items())
    if all(_is_missing(v) for v in tags.values()):
        return None
    return tags


def _as_int(tag: str, value: Any) -> int:
    if value is None or value == MISSING:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        raise RecordFormatError(f"FORMAT/{tag} is not an integer: {value!r}") from None


def _as_counts(tag: str, value: Any, expected: int) -> List[int]:
    # An absent list stands for "no observations" of every allele in it.
    if _is_missing(value):
        return [0] * expected
    if isinstance(value, str):
        items: Iterable[Any] = value.split(",")
    elif isinstance(value, (tuple, list)):
        items = value
    else:
        items = [value]
    return [_as_int(tag, v) for v in items]


def parse_gt(value: Any, n_alleles: int) -> int:
    """Return the called allele index; ``n_alleles`` marks an unresolved call.

    ``value`` is pysam's allele-index tuple. Haploid calls use the single
    index; for diploid calls the first allele wins.
    """
    first = value[0] if isinstance(value, (tuple, list)) and value else value
    if _is_missing(first):
        return n_alleles
    idx = _as_int("GT", first)
    if idx < 0 or idx >= n_alleles:
        raise RecordFormatError(f"GT index {idx} out of range for {n_alleles} alleles")
    return idx


def parse_evidence(
    sample: Mapping[str, Any],
    n_alleles: int,
    *,
    name: str = "",
) -> Optional[SampleEvidence]:
    """Decode one sample's FORMAT values into a :class:`SampleEvidence`.

    Parameters
    ----------
    sample:
        The sample's values, e.g. ``rec.samples["S1"]``.
    n_alleles:
        Number of alleles at the site (reference plus alternates).
    name:
        Sample identifier used in error messages.

    Returns
    -------
    SampleEvidence, or None when the sample has no call (``.``).

    Notes
    -----
    Allele observation counts are read from ``RO``/``AO`` (freebayes) or from
    ``AD`` (GATK, bcftools). ``GT`` and ``DP`` are always required.
    """
    tags = decode_sample(sample)
    if tags is None:
        return None

    label = f"sample {name}" if name else "sample"
    for required in ("GT", "DP"):
        if required not in tags:
            raise RecordFormatError(f"{label} lacks required FORMAT/{required}")

    gt_index = parse_gt(tags["GT"], n_alleles)
    depth = _as_int("DP", tags["DP"])
    if depth < 0:
        raise RecordFormatError(f"FORMAT/DP is negative: {depth}")

    if "RO" in tags and "AO" in tags:
        counts = [_as_int("RO", tags["RO"])] + _as_counts("AO", tags["AO"], n_alleles - 1)
    elif "AD" in tags:
        counts = _as_counts("AD", tags["AD"], n_alleles)
    else:
        raise RecordFormatError(f"{label} has no allele counts (expected RO+AO or AD)")

    if len(counts) != n_alleles:
        raise RecordFormatError(
            f"{label} has {len(counts)} allele counts for {n_alleles} alleles"
        )

    return SampleEvidence(gt_index=gt_index, depth=depth, counts=tuple(counts))
