from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

from .models import CoreConfig, Rejection, Sample, SampleCall, VariantSite
from .parser import parse_evidence
from .samples import SampleRegistry

logger = logging.getLogger(__name__)

Resolution = Union[SampleCall, Rejection]


def _reference_call(site: VariantSite, sample: Sample) -> SampleCall:
    return SampleCall(
        sample=sample,
        allele=site.ref,
        gt_index=0,
        depth=0,
        counts=(),
        evidence="",
    )


def _missing_call(site: VariantSite, sample: Sample, config: CoreConfig) -> SampleCall:
    return SampleCall(
        sample=sample,
        allele=config.missing_char * site.allele_len,
        gt_index=len(site.alts) + 1,
        depth=0,
        counts=(),
        evidence="",
    )


def resolve_sample(
    site: VariantSite,
    sample: Sample,
    values: Optional[Mapping[str, Any]],
    config: CoreConfig,
) -> Resolution:
    """Resolve one sample's allele at a site, or say why it cannot be trusted.

    ``values`` are the sample's FORMAT values (unused for the reference row).
    A depth or fraction failure is returned as a :class:`Rejection`; the
    caller drops the whole site, not just this sample.
    """
    if sample.is_reference:
        return _reference_call(site, sample)

    n_alleles = len(site.alts) + 1
    evidence = parse_evidence(values or {}, n_alleles, name=sample.name)

    if evidence is None:
        if config.allow_missing:
            return _missing_call(site, sample, config)
        return Rejection("no_call", f"sample {sample.name}")

    candidates = [site.ref, *site.alts, config.missing_char * site.allele_len]
    allele = candidates[evidence.gt_index]

    if evidence.depth < config.min_depth:
        return Rejection(
            "low_depth", f"sample {sample.name} DP={evidence.depth} < {config.min_depth}"
        )

    observed = evidence.counts[evidence.gt_index] if evidence.gt_index < n_alleles else 0
    frac = observed / evidence.depth if evidence.depth > 0 else 0.0
    if frac < config.min_frac:
        return Rejection(
            "low_fraction",
            f"sample {sample.name} {observed}/{evidence.depth}={frac:.3f} < {config.min_frac:g}",
        )

    return SampleCall(
        sample=sample,
        allele=allele,
        gt_index=evidence.gt_index,
        depth=evidence.depth,
        counts=evidence.counts,
        evidence=f"{observed}/{evidence.depth}",
    )


def all_resolved(results: Iterable[Resolution]) -> Union[List[SampleCall], Rejection]:
    """Collect calls until the first rejection; later results are not consumed."""
    calls: List[SampleCall] = []
    for res in results:
        if isinstance(res, Rejection):
            return res
        calls.append(res)
    return calls


def resolve_site(
    site: VariantSite,
    samples: Sequence[Mapping[str, Any]],
    registry: SampleRegistry,
    config: CoreConfig,
) -> Union[List[SampleCall], Rejection]:
    """Resolve every included sample, in inclusion order.

    ``samples`` holds each header sample's FORMAT values by column, as
    ``rec.samples`` does.
    """

    def _values(sample: Sample) -> Optional[Mapping[str, Any]]:
        if sample.column is None:
            return None
        return samples[sample.column]

    return all_resolved(
        resolve_sample(site, sample, _values(sample), config) for sample in registry.included
    )
