from snpcore.filters import FILTERS, allele_classes, check_site, site_class
from snpcore.models import CoreConfig, VariantSite


def _site(ref="G", alt="A", qual=500.0, info="NUMALT=1;TYPE=snp"):
    alts = () if alt == "." else tuple(alt.split(","))
    pairs = [item.split("=") for item in info.split(";") if item]
    return VariantSite(
        chrom="chr1",
        pos=100,
        ref=ref,
        alts=alts,
        qual=qual,
        info=dict(pairs),
        fmt=("GT", "DP", "RO", "AO"),
    )


def _reason(site, config=None):
    rej = check_site(site, config or CoreConfig())
    return None if rej is None else rej.reason


def test_filter_order():
    assert [name for name, _ in FILTERS] == [
        "has_variant",
        "quality_floor",
        "has_alternates",
        "substitution_class",
        "uniform_length",
    ]


def test_plain_snp_passes():
    assert _reason(_site()) is None


def test_no_alternate_rejected_first():
    # Low QUAL would also fail, but the missing ALT is reported.
    assert _reason(_site(alt=".", qual=5.0, info="NUMALT=0")) == "no_variant"


def test_quality_floor():
    assert _reason(_site(qual=99.0)) == "low_qual"
    assert _reason(_site(qual=100.0)) is None
    assert _reason(_site(qual=0.0)) is None
    assert _reason(_site(qual=None)) is None
    assert _reason(_site(qual=20.0), CoreConfig(min_qual=10)) is None


def test_zero_numalt_rejected():
    assert _reason(_site(info="NUMALT=0;TYPE=snp")) == "zero_alt"


def test_allele_class():
    assert _reason(_site(ref="AC", alt="GT", info="TYPE=mnp")) is None
    assert _reason(_site(ref="AC", alt="GC,TT", info="TYPE=snp,mnp")) == "allele_class"
    assert _reason(_site(ref="AT", alt="A", info="TYPE=del")) == "allele_class"
    assert _reason(_site(ref="A", alt="AT", info="TYPE=ins")) == "allele_class"
    assert _reason(_site(ref="AT", alt="GC", info="TYPE=complex")) == "allele_class"
    assert _reason(_site(alt="C,T", info="TYPE=snp")) == "allele_class"


def test_allele_class_derived_without_type():
    assert allele_classes(_site(ref="AC", alt="GT,GA", info="NUMALT=2")) == ["mnp", "mnp"]
    assert _reason(_site(info="NUMALT=1")) is None
    assert _reason(_site(ref="A", alt="AT", info="NUMALT=1")) == "allele_class"


def test_uniform_length():
    assert _reason(_site(ref="A", alt="CG", info="TYPE=snp")) == "allele_length"


def test_site_class():
    assert site_class(_site()) == "snp"
    assert site_class(_site(ref="AC", alt="GT", info="TYPE=mnp")) == "mnp"
