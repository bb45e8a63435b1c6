from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .core import run_core
from .models import CoreConfig
from .plotting import plot_site_positions, plot_skip_reasons
from .report import render_report, write_report_txt
from .toy_data import make_toy_data
from .utils import ensure_outdir, write_json
from .validation import check_config, check_input_vcf, check_prefix
from .writers import CoreWriter, index_vcf, output_paths


def _setup_logging(verbosity: int, *, logfile: Optional[Path] = None) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    log_fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    logging.basicConfig(level=level, format=log_fmt, stream=sys.stderr)

    if logfile is not None:
        logfile.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(logfile)
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(log_fmt))
        logging.getLogger().addHandler(fh)


def _path_exists(p: str) -> str:
    if not Path(p).exists():
        raise argparse.ArgumentTypeError(f"Path does not exist: {p}")
    return p


def _log_path(outdir: Path, name: str) -> Path:
    return outdir / "logs" / name


def _handle_error(err: Exception, *, log_path: Optional[Path] = None) -> int:
    msg = f"{err.__class__.__name__}: {err}"
    sys.stderr.write(msg + "\n")
    if log_path is not None:
        sys.stderr.write(f"See log: {log_path}\n")
    return 2


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="snpcore",
        description=(
            "snpcore: extract a core-genome SNP/MNP alignment from a multi-sample VCF. "
            "Keeps only sites where every sample has a confident call."
        ),
    )
    p.add_argument("--version", action="version", version=f"snpcore {__version__}")

    sub = p.add_subparsers(dest="cmd", required=True)

    # -----------------
    # quickstart
    # -----------------
    sub.add_parser(
        "quickstart",
        help="Print ready-to-run recipes for common scenarios.",
    )

    # -----------------
    # make-toy-data
    # -----------------
    t = sub.add_parser(
        "make-toy-data",
        help="Generate a tiny multi-sample VCF for demos/tests.",
    )
    t.add_argument("--outdir", required=True, help="Output directory for toy data.")
    t.add_argument("--dry-run", action="store_true", help="Validate paths without writing files.")

    # -----------------
    # core
    # -----------------
    c = sub.add_parser(
        "core",
        help="Build the core-genome alignment and per-site annotations from a multi-sample VCF.",
    )
    c.add_argument(
        "--vcf",
        required=True,
        type=_path_exists,
        help="Multi-sample VCF (.vcf or bgzip/gzip .vcf.gz).",
    )
    c.add_argument("--prefix", required=True, help="Output file prefix, e.g. 'core'.")
    c.add_argument("--outdir", default=".", help="Output directory (default: current directory).")
    c.add_argument(
        "--samples",
        nargs="+",
        default=None,
        help="Samples to include, in alignment order (default: all samples in the VCF header).",
    )

    # Thresholds
    c.add_argument(
        "--min-depth",
        type=int,
        default=10,
        help="Minimum read depth (DP) every sample needs at a core site.",
    )
    c.add_argument(
        "--min-frac",
        type=float,
        default=0.9,
        help="Minimum fraction of reads supporting each sample's called allele.",
    )
    c.add_argument(
        "--min-qual",
        type=int,
        default=100,
        help="Minimum site QUAL (sites with QUAL 0 or '.' are not checked).",
    )

    # Alignment rows
    c.add_argument(
        "--no-ref",
        action="store_true",
        help="Do not include the reference as an alignment row.",
    )
    c.add_argument(
        "--allow-missing",
        action="store_true",
        help="Fill samples without a call ('.') with --missing-char instead of dropping the site.",
    )
    c.add_argument("--missing-char", default="N", help="Alignment symbol for missing data.")
    c.add_argument("--gap-char", default="-", help="Alignment symbol declared as gap (NEXUS).")

    # Outputs
    c.add_argument(
        "--no-index",
        action="store_true",
        help="Leave the filtered VCF uncompressed (skip bgzip + tabix).",
    )
    c.add_argument("--no-progress", action="store_true", help="Disable the progress bar.")
    c.add_argument("--dry-run", action="store_true", help="Validate inputs and print planned outputs.")
    c.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v/-vv).")

    return p


# -----------------
# Command handlers
# -----------------

def cmd_quickstart() -> int:
    lines = [
        "snpcore quickstart (copy/paste):",
        "",
        "1) All samples in the VCF, reference as first row:",
        "   snpcore core \\",
        "     --vcf calls.vcf.gz \\",
        "     --prefix core \\",
        "     --outdir results/",
        "   Outputs: results/core.aln, results/core.nex, results/core.tab, results/report.html",
        "",
        "2) Selected samples only, no reference row, stricter depth:",
        "   snpcore core \\",
        "     --vcf calls.vcf.gz \\",
        "     --prefix subset \\",
        "     --samples S1 S2 S3 \\",
        "     --no-ref --min-depth 20 \\",
        "     --outdir results/",
        "",
        "3) Try it on toy data:",
        "   snpcore make-toy-data --outdir toy/",
        "   snpcore core --vcf toy/toy.vcf.gz --prefix core --outdir toy_out/",
        "",
        "Tip: use --dry-run to validate inputs and print the planned outputs.",
    ]
    print("\n".join(lines))
    return 0


def cmd_make_toy_data(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve()
    if args.dry_run:
        print(f"Would write toy data into: {outdir}")
        return 0

    summary = make_toy_data(outdir=outdir)
    print(json.dumps(summary, indent=2))
    return 0


def _config_from_args(args: argparse.Namespace) -> CoreConfig:
    return CoreConfig(
        min_depth=int(args.min_depth),
        min_frac=float(args.min_frac),
        min_qual=int(args.min_qual),
        with_reference=not bool(args.no_ref),
        allow_missing=bool(args.allow_missing),
        missing_char=str(args.missing_char),
        gap_char=str(args.gap_char),
        samples=list(args.samples) if args.samples else None,
        index_vcf=not bool(args.no_index),
    )


def cmd_core(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve()
    log_path = _log_path(outdir, "core.log")
    _setup_logging(args.verbose, logfile=None if args.dry_run else log_path)

    logger = logging.getLogger("snpcore")
    logger.info("snpcore %s", __version__)

    try:
        prefix = check_prefix(args.prefix)
        config = check_config(_config_from_args(args))
        check_input_vcf(args.vcf)

        if args.dry_run:
            print("Dry-run: inputs look OK.")
            print("Planned outputs:")
            for path in output_paths(outdir, prefix).values():
                print(f"  {path}")
            print(f"  {outdir / (prefix + '.txt')}")
            print(f"  {outdir / 'summary.json'}")
            print(f"  {outdir / 'report.html'}")
            return 0

        outdir = ensure_outdir(outdir)

        with CoreWriter(outdir, prefix, config) as writer:
            ctx = run_core(args.vcf, config, writer, progress=not bool(args.no_progress))
            paths = dict(writer.paths)

        summary = ctx.finalize()

        outputs = {ext: str(p.name) for ext, p in paths.items()}
        if config.index_vcf:
            vcf_gz = paths["vcf"].with_suffix(paths["vcf"].suffix + ".gz")
            outputs["vcf"] = vcf_gz.name
            outputs["tbi"] = vcf_gz.name + ".tbi"

        txt_path = write_report_txt(outdir / f"{prefix}.txt", summary)
        outputs["txt"] = txt_path.name
        write_json(outdir / "summary.json", summary)

        plots_dir = outdir / "plots"
        plots_dir.mkdir(parents=True, exist_ok=True)
        skip_png = plots_dir / "skip_reasons.png"
        positions_png = plots_dir / "site_positions.png"
        plot_skip_reasons(skipped=summary["skipped"], out_png=skip_png)
        plot_site_positions(positions=ctx.positions, out_png=positions_png)

        plots_rel = {
            "skip_reasons": str(Path("plots") / skip_png.name),
            "site_positions": str(Path("plots") / positions_png.name),
        }

        report_path = render_report(
            outdir=outdir,
            prefix=prefix,
            version=__version__,
            summary=summary,
            plots=plots_rel,
            outputs=outputs,
        )

        logger.info("Report written: %s", report_path)
        print(str(report_path))
    except Exception as e:
        return _handle_error(e, log_path=None if args.dry_run else log_path)

    # Last step: every other artifact must survive a tabix failure (e.g. unsorted input).
    if config.index_vcf:
        try:
            index_vcf(paths["vcf"])
        except Exception as e:
            logger.error("Indexing %s failed; the uncompressed VCF was kept: %s", paths["vcf"], e)
            return _handle_error(e, log_path=log_path)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.cmd == "quickstart":
        return cmd_quickstart()
    if args.cmd == "make-toy-data":
        return cmd_make_toy_data(args)
    if args.cmd == "core":
        return cmd_core(args)

    parser.error(f"Unknown command: {args.cmd}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
