from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple

from .models import CoreConfig, Rejection, VariantSite

logger = logging.getLogger(__name__)

SUBSTITUTION_CLASSES = ("snp", "mnp")

SiteFilter = Callable[[VariantSite, CoreConfig], Optional[Rejection]]


def _derived_class(ref: str, alt: str) -> str:
    if len(ref) != len(alt):
        return "complex"
    return "snp" if len(ref) == 1 else "mnp"


def allele_classes(site: VariantSite) -> List[str]:
    """Variant class per alternate allele.

    Taken from INFO/TYPE when the caller declares it (freebayes does);
    otherwise derived from the allele lengths.
    """
    declared = site.info.get("TYPE")
    if declared:
        return [t.strip().lower() for t in declared.split(",")]
    return [_derived_class(site.ref, alt) for alt in site.alts]


def has_variant(site: VariantSite, config: CoreConfig) -> Optional[Rejection]:
    if not site.alts:
        return Rejection("no_variant")
    return None


def quality_floor(site: VariantSite, config: CoreConfig) -> Optional[Rejection]:
    # Zero or absent QUAL means "not applicable".
    if site.qual is not None and site.qual > 0 and site.qual < config.min_qual:
        return Rejection("low_qual", f"QUAL={site.qual:g} < {config.min_qual:g}")
    return None


def has_alternates(site: VariantSite, config: CoreConfig) -> Optional[Rejection]:
    numalt = site.info.get("NUMALT")
    if numalt is not None and numalt.strip() == "0":
        return Rejection("zero_alt", "NUMALT=0")
    return None


def substitution_class(site: VariantSite, config: CoreConfig) -> Optional[Rejection]:
    classes = allele_classes(site)
    if len(classes) != len(site.alts):
        return Rejection(
            "allele_class", f"{len(classes)} TYPE entries for {len(site.alts)} alternates"
        )
    kinds = set(classes)
    if len(kinds) != 1 or not kinds.issubset(SUBSTITUTION_CLASSES):
        return Rejection("allele_class", "TYPE=" + ",".join(classes))
    return None


def uniform_length(site: VariantSite, config: CoreConfig) -> Optional[Rejection]:
    if not site.uniform_length:
        return Rejection(
            "allele_length", f"REF={site.ref} ALT={','.join(site.alts)}"
        )
    return None


# Evaluated in order; the first rejection wins.
FILTERS: Tuple[Tuple[str, SiteFilter], ...] = (
    ("has_variant", has_variant),
    ("quality_floor", quality_floor),
    ("has_alternates", has_alternates),
    ("substitution_class", substitution_class),
    ("uniform_length", uniform_length),
)


def check_site(site: VariantSite, config: CoreConfig) -> Optional[Rejection]:
    """Run the site filter chain; returns the first rejection or None."""
    for _name, predicate in FILTERS:
        rejection = predicate(site, config)
        if rejection is not None:
            return rejection
    return None


def site_class(site: VariantSite) -> str:
    """Uniform substitution class of a site that passed :func:`check_site`."""
    return allele_classes(site)[0]
