from __future__ import annotations

import logging
import os
from pathlib import Path

from .models import CoreConfig

logger = logging.getLogger(__name__)


def check_symbol(value: str, name: str) -> str:
    """Alignment symbols must be exactly one character; raise ValueError otherwise."""
    if not isinstance(value, str) or len(value) != 1:
        raise ValueError(f"{name} must be exactly one character, got {value!r}")
    return value


def check_config(config: CoreConfig) -> CoreConfig:
    """Validate thresholds and symbols before any output is written."""
    check_symbol(config.missing_char, "--missing-char")
    check_symbol(config.gap_char, "--gap-char")
    if config.min_depth < 0:
        raise ValueError(f"--min-depth must be >= 0, got {config.min_depth}")
    if not 0.0 <= config.min_frac <= 1.0:
        raise ValueError(f"--min-frac must be within [0, 1], got {config.min_frac}")
    if config.min_qual < 0:
        raise ValueError(f"--min-qual must be >= 0, got {config.min_qual}")
    if config.samples is not None and len(config.samples) == 0:
        raise ValueError("--samples was given but names no samples")
    return config


def check_prefix(prefix: str) -> str:
    """Output prefixes name files inside --outdir; they may not contain directories."""
    if not prefix or not prefix.strip():
        raise ValueError("Output prefix must not be empty")
    if os.sep in prefix or (os.altsep and os.altsep in prefix):
        raise ValueError(f"Output prefix must not contain a path separator: {prefix!r}")
    return prefix


def check_input_vcf(vcf_path: str | Path) -> None:
    """Ensure the input VCF exists and is readable; raise with fix instructions."""
    vcf = Path(vcf_path)
    if not vcf.is_file():
        raise FileNotFoundError(f"Input VCF not found: {vcf}")
    if not os.access(vcf, os.R_OK):
        raise PermissionError(f"Input VCF is not readable: {vcf}")
    if vcf.suffix == ".vcf":
        logger.info(
            "VCF is uncompressed (.vcf). This is supported; consider bgzip for large files."
        )
