from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

REFERENCE_NAME = "Reference"

# Rejection reason codes, in the order a record meets them.
REJECT_REASONS = (
    "no_variant",
    "low_qual",
    "zero_alt",
    "allele_class",
    "allele_length",
    "no_call",
    "low_depth",
    "low_fraction",
    "call_count",
    "monomorphic",
)


@dataclass(frozen=True)
class Sample:
    """One column of the alignment.

    Attributes
    ----------
    name:
        Identifier as declared in the VCF header row.
    column:
        0-based index into the record's per-sample fields. ``None`` for the
        synthetic reference sample, which is never looked up by column.
    included:
        Whether the sample takes part in core determination.
    """

    name: str
    column: Optional[int]
    included: bool = True

    @property
    def is_reference(self) -> bool:
        return self.column is None


@dataclass(frozen=True)
class VariantSite:
    """Site-level fields of one VCF data record.

    ``pos`` is 1-based. ``alts`` is empty when the ALT column is ``.``.
    ``qual`` is None when QUAL is ``.``. ``info`` maps INFO keys to their
    text values, with list values joined by commas; flag keys map to None.
    ``record`` is the ``pysam.VariantRecord`` the site was read from; it is
    re-emitted unchanged into the filtered VCF.
    """

    chrom: str
    pos: int
    ref: str
    alts: Tuple[str, ...]
    qual: Optional[float]
    info: Dict[str, Optional[str]]
    fmt: Tuple[str, ...]
    record: Any = field(default=None, compare=False, repr=False)

    @property
    def allele_len(self) -> int:
        return len(self.ref)

    @property
    def end(self) -> int:
        return self.pos + self.allele_len - 1

    @property
    def uniform_length(self) -> bool:
        return all(len(a) == self.allele_len for a in self.alts)

    @property
    def coord(self) -> str:
        return f"{self.chrom}:{self.pos}"


@dataclass(frozen=True)
class SampleEvidence:
    """Typed view of one sample's FORMAT values."""

    gt_index: int
    depth: int
    counts: Tuple[int, ...]  # aligned with [ref, alt1, alt2, ...]


@dataclass(frozen=True)
class SampleCall:
    sample: Sample
    allele: str
    gt_index: int
    depth: int
    counts: Tuple[int, ...]
    evidence: str  # "observed/depth", or "" when not applicable


@dataclass(frozen=True)
class Rejection:
    """Why a record did not become a core site. Recoverable by definition."""

    reason: str
    detail: str = ""

    def __str__(self) -> str:
        if self.detail:
            return f"{self.reason} ({self.detail})"
        return self.reason


@dataclass(frozen=True)
class CoreSite:
    """A site at which every included sample has a confident call."""

    site: VariantSite
    calls: Tuple[SampleCall, ...]
    ordinal: int  # 1-based, monotonic across the run

    @property
    def alleles(self) -> str:
        return "".join(c.allele for c in self.calls)

    def label(self, prefix: str) -> str:
        return f"{prefix}{self.ordinal:06d}"


@dataclass(frozen=True)
class CoreConfig:
    """Run configuration for core site extraction."""

    min_depth: int = 10
    min_frac: float = 0.9
    min_qual: float = 100
    with_reference: bool = True
    allow_missing: bool = False
    missing_char: str = "N"
    gap_char: str = "-"
    samples: Optional[Sequence[str]] = None
    index_vcf: bool = True

    def as_dict(self) -> Dict[str, object]:
        return {
            "min_depth": int(self.min_depth),
            "min_frac": float(self.min_frac),
            "min_qual": float(self.min_qual),
            "with_reference": bool(self.with_reference),
            "allow_missing": bool(self.allow_missing),
            "missing_char": self.missing_char,
            "gap_char": self.gap_char,
            "samples": list(self.samples) if self.samples is not None else None,
        }


@dataclass
class SiteVerdict:
    """Outcome of evaluating one record: either the full call list or a rejection."""

    site: VariantSite
    calls: List[SampleCall] = field(default_factory=list)
    rejection: Optional[Rejection] = None

    @property
    def accepted(self) -> bool:
        return self.rejection is None
