import pytest

from snpcore.models import REFERENCE_NAME
from snpcore.samples import SampleRegistry, UnknownSampleError


def test_all_samples_in_header_order_with_reference():
    reg = SampleRegistry.from_header(["B", "A", "C"])
    assert reg.names == [REFERENCE_NAME, "B", "A", "C"]
    assert reg.included[0].is_reference
    assert reg.included[0].column is None
    assert reg.column("A") == 1
    assert len(reg) == 4


def test_explicit_subset_keeps_requested_order():
    reg = SampleRegistry.from_header(["B", "A", "C"], ["C", "B"], with_reference=False)
    assert reg.names == ["C", "B"]
    assert [s.column for s in reg.included] == [2, 0]
    assert reg.header_samples == ("B", "A", "C")


def test_unknown_sample_fails_loudly():
    with pytest.raises(UnknownSampleError, match="Z"):
        SampleRegistry.from_header(["A", "B"], ["A", "Z"])
    reg = SampleRegistry.from_header(["A"])
    with pytest.raises(UnknownSampleError):
        reg.column("nope")


def test_header_without_samples():
    with pytest.raises(ValueError, match="no sample identifiers"):
        SampleRegistry.from_header([])


def test_duplicate_header_samples():
    with pytest.raises(ValueError, match="duplicate"):
        SampleRegistry.from_header(["A", "A"])


def test_requested_sample_repeated():
    with pytest.raises(ValueError, match="more than once"):
        SampleRegistry.from_header(["A", "B"], ["A", "A", "B"])


def test_header_sample_named_like_reference_row():
    with pytest.raises(ValueError, match="--no-ref"):
        SampleRegistry.from_header([REFERENCE_NAME, "B"])
    with pytest.raises(ValueError, match="clashes"):
        SampleRegistry.from_header(["A", REFERENCE_NAME], ["A", REFERENCE_NAME])

    # Without the reference row, or when that sample is left out, the name is free.
    reg = SampleRegistry.from_header([REFERENCE_NAME, "B"], with_reference=False)
    assert reg.names == [REFERENCE_NAME, "B"]
    reg = SampleRegistry.from_header([REFERENCE_NAME, "B"], ["B"])
    assert reg.names == [REFERENCE_NAME, "B"]
    assert reg.included[1].column == 1


def test_empty_identifier_is_rejected_not_dropped():
    # Dropping the blank name would shift C from column 2 to column 1.
    with pytest.raises(ValueError, match=r"empty sample identifiers at sample column\(s\) \[1\]"):
        SampleRegistry.from_header(["A", "", "C"])
    with pytest.raises(ValueError, match="empty"):
        SampleRegistry.from_header(["A", " "])
