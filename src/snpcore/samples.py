from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from .models import REFERENCE_NAME, Sample

logger = logging.getLogger(__name__)


class UnknownSampleError(ValueError):
    """Raised when a requested sample is not declared in the VCF header."""


def _repeated(names: Sequence[str]) -> List[str]:
    return sorted({name for name in names if names.count(name) > 1})


class SampleRegistry:
    """Fixed mapping from sample identifier to per-record column.

    Built once from the header; the ``included`` list is the explicit,
    ordered set of alignment rows used everywhere downstream. Row identity is
    positional, so every included name is unique.
    """

    def __init__(self, header_samples: Sequence[str], included: Sequence[Sample]) -> None:
        self._header_samples: Tuple[str, ...] = tuple(header_samples)
        self._columns: Dict[str, int] = {name: i for i, name in enumerate(self._header_samples)}
        self._included: Tuple[Sample, ...] = tuple(included)

    @classmethod
    def from_header(
        cls,
        header_samples: Sequence[str],
        include: Optional[Sequence[str]] = None,
        *,
        with_reference: bool = True,
    ) -> "SampleRegistry":
        """Build a registry from the sample identifiers of a VCF header.

        Parameters
        ----------
        header_samples:
            Sample identifiers in column order, e.g. ``vcf.header.samples``.
        include:
            Samples to include, in alignment order. ``None`` includes every
            header sample in header order.
        with_reference:
            Prepend the synthetic reference sample.

        Raises
        ------
        ValueError
            No samples, an empty or repeated identifier, or an included sample
            that collides with the reference row's name.
        UnknownSampleError
            A requested sample is not in the header.
        """
        header_samples = list(header_samples)
        if not header_samples:
            raise ValueError(
                "VCF header declares no sample identifiers; "
                "expected a multi-sample VCF with columns after FORMAT."
            )
        blank = [i for i, name in enumerate(header_samples) if not name.strip()]
        if blank:
            raise ValueError(f"VCF header has empty sample identifiers at sample column(s) {blank}")
        dupes = _repeated(header_samples)
        if dupes:
            raise ValueError(f"VCF header declares duplicate sample identifiers: {dupes}")

        columns = {name: i for i, name in enumerate(header_samples)}

        if include is None:
            requested = list(header_samples)
        else:
            requested = list(include)
            missing = [name for name in requested if name not in columns]
            if missing:
                raise UnknownSampleError(
                    f"Sample(s) {missing} not found in VCF header samples: {header_samples}"
                )
            dupes = _repeated(requested)
            if dupes:
                raise ValueError(f"Sample(s) {dupes} requested more than once")

        if with_reference and REFERENCE_NAME in requested:
            raise ValueError(
                f"VCF sample '{REFERENCE_NAME}' clashes with the reference row; "
                "rerun with --no-ref or leave that sample out with --samples."
            )

        included: List[Sample] = []
        if with_reference:
            included.append(Sample(name=REFERENCE_NAME, column=None))
        for name in requested:
            included.append(Sample(name=name, column=columns[name]))

        logger.info(
            "Header declares %d samples; %d alignment rows (reference %s)",
            len(header_samples),
            len(included),
            "included" if with_reference else "excluded",
        )
        return cls(header_samples, included)

    @property
    def header_samples(self) -> Tuple[str, ...]:
        return self._header_samples

    @property
    def included(self) -> Tuple[Sample, ...]:
        return self._included

    @property
    def names(self) -> List[str]:
        return [s.name for s in self._included]

    def column(self, name: str) -> int:
        try:
            return self._columns[name]
        except KeyError:
            raise UnknownSampleError(f"Sample '{name}' not found in VCF header") from None

    def __len__(self) -> int:
        return len(self._included)
