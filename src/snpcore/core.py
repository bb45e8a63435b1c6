from __future__ import annotations

import datetime as _dt
import getpass
import logging
import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence, Union

import pysam
from tqdm import tqdm

from . import __version__
from .filters import check_site
from .genotype import resolve_site
from .models import REJECT_REASONS, CoreConfig, CoreSite, Rejection, SampleCall, SiteVerdict, VariantSite
from .parser import ParsedRecord, RecordFormatError, iter_records
from .samples import SampleRegistry

if TYPE_CHECKING:
    from .writers import CoreWriter

logger = logging.getLogger(__name__)


class AlignmentBuffer:
    """Append-only alignment row for one sample."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._chunks: List[str] = []
        self._length = 0

    def append(self, allele: str) -> None:
        self._chunks.append(allele)
        self._length += len(allele)

    def sequence(self) -> str:
        if len(self._chunks) > 1:
            self._chunks = ["".join(self._chunks)]
        return self._chunks[0] if self._chunks else ""

    def __len__(self) -> int:
        return self._length


class CoreAccumulator:
    """Accepts fully resolved sites and grows the per-sample alignment rows.

    ``buffers`` runs parallel to ``registry.included``: the i-th call of an
    accepted site goes to the i-th buffer. Every accepted site appends exactly
    one allele of the site's length to every buffer, so all buffers stay the
    same length.
    """

    def __init__(self, registry: SampleRegistry) -> None:
        self.registry = registry
        self.buffers: List[AlignmentBuffer] = [AlignmentBuffer(s.name) for s in registry.included]
        self.n_sites = 0
        self.core_bases = 0

    def accept(self, site: VariantSite, calls: Sequence[SampleCall]) -> Union[CoreSite, Rejection]:
        if len(calls) != len(self.buffers):
            return Rejection("call_count", f"{len(calls)} calls for {len(self.buffers)} samples")

        alleles = {c.allele for c in calls}
        if len(alleles) < 2:
            return Rejection("monomorphic", "all samples " + next(iter(alleles), ""))

        self.n_sites += 1
        self.core_bases += site.allele_len
        for buf, call in zip(self.buffers, calls):
            buf.append(call.allele)

        return CoreSite(site=site, calls=tuple(calls), ordinal=self.n_sites)

    def rows(self) -> List[AlignmentBuffer]:
        """Buffers in inclusion order."""
        return list(self.buffers)


def evaluate_site(
    record: ParsedRecord,
    registry: SampleRegistry,
    config: CoreConfig,
) -> SiteVerdict:
    """Decide whether a record can be a core site; no state is touched."""
    site = record.site
    rejection = check_site(site, config)
    if rejection is not None:
        return SiteVerdict(site=site, rejection=rejection)

    resolved = resolve_site(site, record.samples, registry, config)
    if isinstance(resolved, Rejection):
        return SiteVerdict(site=site, rejection=resolved)
    return SiteVerdict(site=site, calls=resolved)


class RunContext:
    """All state that outlives a single record."""

    def __init__(self, config: CoreConfig, *, input_path: str = "") -> None:
        self.config = config
        self.input_path = input_path
        self.registry: Optional[SampleRegistry] = None
        self.accumulator: Optional[CoreAccumulator] = None
        self.records_seen = 0
        self.skipped: Dict[str, int] = {reason: 0 for reason in REJECT_REASONS}
        self.positions: Dict[str, List[int]] = {}
        self.started_at = _dt.datetime.now()
        self._t0 = time.time()
        self._summary: Optional[Dict[str, object]] = None

    def set_header(self, header_samples: Sequence[str]) -> bool:
        """Register the header's samples; returns False if already set."""
        if self.registry is not None:
            logger.warning("Ignoring repeated header; the first one defines the samples.")
            return False
        self.registry = SampleRegistry.from_header(
            header_samples,
            self.config.samples,
            with_reference=self.config.with_reference,
        )
        self.accumulator = CoreAccumulator(self.registry)
        return True

    def reject(self, site: VariantSite, rejection: Rejection) -> None:
        self.skipped[rejection.reason] = self.skipped.get(rejection.reason, 0) + 1
        logger.debug("Skipping %s: %s", site.coord, rejection)

    def consider(self, record: ParsedRecord) -> Optional[CoreSite]:
        """Evaluate a record and, if it qualifies, accumulate it."""
        if self.registry is None or self.accumulator is None:
            raise RuntimeError("set_header() must be called before records are considered")
        self.records_seen += 1

        verdict = evaluate_site(record, self.registry, self.config)
        if not verdict.accepted:
            assert verdict.rejection is not None
            self.reject(verdict.site, verdict.rejection)
            return None

        outcome = self.accumulator.accept(verdict.site, verdict.calls)
        if isinstance(outcome, Rejection):
            self.reject(verdict.site, outcome)
            return None

        self.positions.setdefault(outcome.site.chrom, []).append(outcome.site.pos)
        return outcome

    @property
    def n_sites(self) -> int:
        return self.accumulator.n_sites if self.accumulator is not None else 0

    @property
    def core_bases(self) -> int:
        return self.accumulator.core_bases if self.accumulator is not None else 0

    def finalize(self) -> Dict[str, object]:
        """Produce the run summary. Only the first call computes it."""
        if self._summary is not None:
            return self._summary

        names = self.registry.names if self.registry is not None else []
        try:
            operator = getpass.getuser()
        except (KeyError, OSError):
            operator = "unknown"

        self._summary = {
            "version": __version__,
            "invocation": " ".join(sys.argv),
            "timestamp": self.started_at.isoformat(timespec="seconds"),
            "operator": operator,
            "input": self.input_path,
            **self.config.as_dict(),
            "num_samples": len(names),
            "sample_names": list(names),
            "records_seen": self.records_seen,
            "num_sites": self.n_sites,
            "num_bases": self.core_bases,
            "skipped": dict(self.skipped),
            "runtime_seconds": float(time.time() - self._t0),
        }
        return self._summary


def run_core(
    input_path: str | Path,
    config: CoreConfig,
    writer: "CoreWriter",
    *,
    progress: bool = True,
) -> RunContext:
    """Single pass over a multi-sample VCF, emitting every core site to ``writer``."""
    ctx = RunContext(config, input_path=str(input_path))

    with pysam.VariantFile(str(input_path)) as vcf:
        ctx.set_header(list(vcf.header.samples))
        assert ctx.registry is not None and ctx.accumulator is not None
        writer.write_header(vcf.header, ctx.registry.names)

        records: Iterable[ParsedRecord] = iter_records(vcf)
        if progress:
            records = tqdm(records, unit="site", desc="Scanning sites")

        for record in records:
            try:
                core_site = ctx.consider(record)
            except RecordFormatError as e:
                if e.where is None:
                    raise RecordFormatError(str(e), where=record.site.coord) from e
                raise
            if core_site is not None:
                writer.write_site(core_site)

    writer.finalize(ctx.accumulator.rows())

    if ctx.n_sites == 0:
        logger.warning("No core sites found; alignment outputs are empty.")
    logger.info(
        "Found %d core sites (%d bases) from %d records across %d samples",
        ctx.n_sites,
        ctx.core_bases,
        ctx.records_seen,
        len(ctx.registry),
    )
    return ctx
