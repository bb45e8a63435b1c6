from pathlib import Path

import pytest

from snpcore.core import AlignmentBuffer, CoreAccumulator, RunContext, evaluate_site, run_core
from snpcore.models import REFERENCE_NAME, CoreConfig, Rejection, Sample, VariantSite
from snpcore.parser import ParsedRecord, RecordFormatError
from snpcore.samples import SampleRegistry
from snpcore.toy_data import TOY_SITES, make_toy_data, write_vcf
from snpcore.writers import CoreWriter

SAMPLES = ["A", "B", "C"]


def _record(pos, ref, alt, *calls, kind="snp"):
    site = VariantSite(
        chrom="chr1",
        pos=pos,
        ref=ref,
        alts=(alt,),
        qual=500.0,
        info={"TYPE": kind},
        fmt=("GT", "DP", "RO", "AO"),
    )
    samples = [{"GT": (gt,), "DP": dp, "RO": ro, "AO": (ao,)} for gt, dp, ro, ao in calls]
    return ParsedRecord(site=site, samples=samples)


def _run(tmp_path: Path, config: CoreConfig, name: str = "out", sites=TOY_SITES) -> RunContext:
    vcf = write_vcf(tmp_path / f"{name}.vcf", sites)
    with CoreWriter(tmp_path / name, "core", config) as writer:
        return run_core(vcf, config, writer, progress=False)


def test_alignment_buffer():
    buf = AlignmentBuffer("A")
    assert len(buf) == 0
    assert buf.sequence() == ""
    buf.append("G")
    buf.append("TT")
    assert len(buf) == 3
    assert buf.sequence() == "GTT"
    buf.append("C")
    assert buf.sequence() == "GTTC"


def test_monomorphic_without_reference_is_rejected():
    # All three samples call T and the reference row is excluded.
    reg = SampleRegistry.from_header(SAMPLES, with_reference=False)
    rec = _record(9, "C", "T", (1, 20, 0, 20), (1, 20, 0, 20), (1, 20, 0, 20))
    verdict = evaluate_site(rec, reg, CoreConfig())
    assert verdict.accepted

    acc = CoreAccumulator(reg)
    res = acc.accept(verdict.site, verdict.calls)
    assert isinstance(res, Rejection)
    assert res.reason == "monomorphic"
    assert acc.n_sites == 0
    assert all(len(b) == 0 for b in acc.rows())


def test_same_site_with_reference_is_core():
    reg = SampleRegistry.from_header(SAMPLES)
    rec = _record(9, "C", "T", (1, 20, 0, 20), (1, 20, 0, 20), (1, 20, 0, 20))
    verdict = evaluate_site(rec, reg, CoreConfig())
    acc = CoreAccumulator(reg)
    core = acc.accept(verdict.site, verdict.calls)
    assert not isinstance(core, Rejection)
    assert core.ordinal == 1
    assert core.alleles == "CTTT"
    assert core.label("core") == "core000001"


def test_call_count_revalidated():
    reg = SampleRegistry.from_header(SAMPLES)
    rec = _record(9, "C", "T", (1, 20, 0, 20), (0, 20, 20, 0), (1, 20, 0, 20))
    verdict = evaluate_site(rec, reg, CoreConfig())
    acc = CoreAccumulator(reg)
    res = acc.accept(verdict.site, verdict.calls[:-1])
    assert isinstance(res, Rejection)
    assert res.reason == "call_count"


def test_buffers_grow_in_lock_step():
    reg = SampleRegistry.from_header(SAMPLES)
    acc = CoreAccumulator(reg)
    records = [
        _record(1, "G", "A", (1, 20, 0, 20), (0, 20, 20, 0), (1, 20, 0, 20)),
        _record(5, "AC", "GT", (1, 20, 0, 20), (0, 20, 20, 0), (0, 20, 20, 0), kind="mnp"),
        _record(9, "T", "C", (0, 20, 20, 0), (0, 20, 20, 0), (0, 20, 20, 0)),  # monomorphic
        _record(12, "T", "C", (0, 20, 20, 0), (1, 20, 0, 20), (0, 20, 20, 0)),
    ]
    expected_len = 0
    for rec in records:
        verdict = evaluate_site(rec, reg, CoreConfig())
        res = acc.accept(verdict.site, verdict.calls)
        if not isinstance(res, Rejection):
            expected_len += rec.site.allele_len
            assert len({a.allele for a in res.calls}) >= 2
        assert {len(b) for b in acc.rows()} == {expected_len}

    assert acc.n_sites == 3
    assert acc.core_bases == 4
    assert [b.sequence() for b in acc.rows()] == ["GACT", "AGTT", "GACC", "AACT"]


def test_rows_are_positional_even_when_names_repeat():
    # Two rows reading the same column still get one allele each per site.
    reg = SampleRegistry(["A", "B"], [Sample("A", 0), Sample("A", 0), Sample("B", 1)])
    acc = CoreAccumulator(reg)
    rec = _record(1, "G", "A", (1, 20, 0, 20), (0, 20, 20, 0))
    verdict = evaluate_site(rec, reg, CoreConfig())
    core = acc.accept(verdict.site, verdict.calls)
    assert not isinstance(core, Rejection)
    assert [b.name for b in acc.rows()] == ["A", "A", "B"]
    assert [b.sequence() for b in acc.rows()] == ["A", "A", "G"]


def test_reference_named_sample_is_fatal_before_any_output(tmp_path: Path):
    vcf = tmp_path / "ref.vcf"
    write_vcf(vcf, TOY_SITES[:1], samples=(REFERENCE_NAME, "S2", "S3"))
    config = CoreConfig()
    with pytest.raises(ValueError, match="clashes with the reference row"):
        with CoreWriter(tmp_path / "out", "core", config) as writer:
            run_core(vcf, config, writer, progress=False)

    # Leaving the reference row out resolves the clash.
    config = CoreConfig(with_reference=False)
    with CoreWriter(tmp_path / "out", "core", config) as writer:
        ctx = run_core(vcf, config, writer, progress=False)
    assert ctx.registry.names == [REFERENCE_NAME, "S2", "S3"]
    assert [b.sequence() for b in ctx.accumulator.rows()] == ["A", "G", "A"]


def test_run_core_on_toy_data(tmp_path: Path):
    ctx = _run(tmp_path, CoreConfig())
    assert ctx.records_seen == 12
    assert ctx.n_sites == 3
    assert ctx.core_bases == 4
    assert ctx.skipped["no_variant"] == 1
    assert ctx.skipped["low_qual"] == 1
    assert ctx.skipped["zero_alt"] == 1
    assert ctx.skipped["allele_class"] == 2
    assert ctx.skipped["allele_length"] == 1
    assert ctx.skipped["low_depth"] == 1
    assert ctx.skipped["low_fraction"] == 1
    assert ctx.skipped["no_call"] == 1
    assert ctx.skipped["monomorphic"] == 0
    assert ctx.positions == {"chr1": [10, 70, 110]}

    seqs = {b.name: b.sequence() for b in ctx.accumulator.rows()}
    assert seqs == {"Reference": "GACC", "S1": "AGTT", "S2": "GACT", "S3": "AGTT"}


def test_run_core_reads_bgzipped_input(tmp_path: Path):
    toy = make_toy_data(outdir=tmp_path / "toy")
    config = CoreConfig()
    with CoreWriter(tmp_path / "out", "core", config) as writer:
        ctx = run_core(toy["vcf"], config, writer, progress=False)
    assert ctx.n_sites == 3


def test_run_core_without_reference(tmp_path: Path):
    ctx = _run(tmp_path, CoreConfig(with_reference=False))
    assert ctx.n_sites == 2
    assert ctx.core_bases == 3
    assert ctx.skipped["monomorphic"] == 1


def test_run_core_allow_missing(tmp_path: Path):
    ctx = _run(tmp_path, CoreConfig(allow_missing=True))
    assert ctx.n_sites == 4
    assert ctx.skipped["no_call"] == 0
    seqs = {b.name: b.sequence() for b in ctx.accumulator.rows()}
    assert seqs["S2"] == "GACNT"


def test_run_core_is_reproducible(tmp_path: Path):
    first = _run(tmp_path, CoreConfig(), name="a")
    second = _run(tmp_path, CoreConfig(), name="b")
    assert first.n_sites == second.n_sites
    assert first.core_bases == second.core_bases
    assert [b.sequence() for b in first.accumulator.rows()] == [
        b.sequence() for b in second.accumulator.rows()
    ]
    assert (tmp_path / "a" / "core.aln").read_bytes() == (tmp_path / "b" / "core.aln").read_bytes()


def test_finalize_summary(tmp_path: Path):
    ctx = _run(tmp_path, CoreConfig(samples=["S3", "S1"]))
    summary = ctx.finalize()
    assert summary["sample_names"] == ["Reference", "S3", "S1"]
    assert summary["num_samples"] == 3
    assert summary["num_sites"] == ctx.n_sites
    assert summary["min_depth"] == 10
    assert ctx.finalize() is summary


def test_repeated_header_is_ignored():
    ctx = RunContext(CoreConfig())
    assert ctx.set_header(["S1", "S2"])
    assert not ctx.set_header(["X1", "S2"])
    assert ctx.registry.names == ["Reference", "S1", "S2"]


def test_record_before_header_is_an_error():
    ctx = RunContext(CoreConfig())
    with pytest.raises(RuntimeError, match="set_header"):
        ctx.consider(_record(1, "G", "A", (1, 20, 0, 20)))


def test_malformed_sample_values_name_the_site(tmp_path: Path):
    # A negative depth for S1.
    sites = [(15, "G", ("A",), 500, {"TYPE": ("snp",)}, [(1, -1, 0, 20), (0, 20, 20, 0), (1, 20, 0, 20)])]
    config = CoreConfig()
    with pytest.raises(RecordFormatError, match="chr1:15: FORMAT/DP is negative: -1"):
        _run(tmp_path, config, sites=sites)


def test_unknown_sample_is_fatal(tmp_path: Path):
    config = CoreConfig(samples=["S1", "nope"])
    with pytest.raises(ValueError, match="nope"):
        _run(tmp_path, config)
