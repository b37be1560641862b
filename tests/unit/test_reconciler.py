import pytest

from skillswap.core.annotations import AnnotationStore
from skillswap.core.reconciler import Reconciler
from skillswap.lib import fingerprint as fp
from skillswap.models import AnnotationEntry, DisplaySource
from skillswap.sources import InMemoryRecordSource


@pytest.fixture
def annotations():
    return AnnotationStore()


@pytest.mark.asyncio
async def test_annotation_wins_for_own_identity(annotations, make_record):
    """Own annotation shows plaintext; an identical fingerprint elsewhere stays raw."""
    annotations.put("0xabc", AnnotationEntry(teach_text="Guitar"))
    reconciler = Reconciler(annotations)
    mine = make_record(1, "0xabc", "Guitar", "Painting", packed=False)
    theirs = make_record(2, "0xdef", "Guitar", "Cooking", packed=False)

    own_view = await reconciler.merge(mine)
    other_view = await reconciler.merge(theirs)

    assert own_view.teach_display == "Guitar"
    assert own_view.teach_source == DisplaySource.ANNOTATION
    assert other_view.teach_display == fp.canonical(theirs.teach_fingerprint)
    assert other_view.teach_source == DisplaySource.RAW


@pytest.mark.asyncio
async def test_annotation_beats_decoded_text(annotations, make_record):
    annotations.put("0xabc", AnnotationEntry(teach_text="Guitar (classical)"))
    view = await Reconciler(annotations).merge(make_record(1, "0xabc", "Guitar", "Painting"))

    assert view.teach_display == "Guitar (classical)"
    assert view.learn_display == "Painting"
    assert view.learn_source == DisplaySource.DECODED


@pytest.mark.asyncio
async def test_packed_fingerprints_decode(annotations, make_record):
    view = await Reconciler(annotations).merge(make_record(1, "0xabc", "Guitar", "Painting"))

    assert (view.teach_display, view.learn_display) == ("Guitar", "Painting")
    assert view.teach_source == view.learn_source == DisplaySource.DECODED


@pytest.mark.asyncio
async def test_hashed_fingerprints_fall_back_to_hex(annotations, make_record):
    record = make_record(1, "0xabc", "Guitar", "Painting", packed=False)
    view = await Reconciler(annotations).merge(record)

    assert view.teach_display == fp.canonical(record.teach_fingerprint)
    assert view.learn_display == fp.canonical(record.learn_fingerprint)
    assert view.teach_display.startswith("0x")


@pytest.mark.asyncio
async def test_decoder_errors_mean_undecodable(annotations, make_record):
    def boom(fingerprint):
        raise RuntimeError("rpc exploded")

    record = make_record(1, "0xabc", "Guitar", "Painting")
    view = await Reconciler(annotations, decode=boom).merge(record)

    assert view.teach_source == DisplaySource.RAW
    assert view.teach_display == fp.canonical(record.teach_fingerprint)


@pytest.mark.asyncio
async def test_blank_decode_is_ignored(annotations, make_record):
    view = await Reconciler(annotations, decode=lambda _: "   ").merge(
        make_record(1, "0xabc", "Guitar", "Painting")
    )

    assert view.teach_source == DisplaySource.RAW


@pytest.mark.asyncio
async def test_async_decoder_from_source(annotations, make_record):
    source = InMemoryRecordSource()
    view = await Reconciler(annotations, decode=source.decode).merge(
        make_record(1, "0xabc", "Guitar", "Painting")
    )

    assert view.teach_display == "Guitar"


@pytest.mark.asyncio
async def test_displays_are_never_empty(annotations, make_record):
    annotations.put("0xabc", AnnotationEntry(teach_text="   "))
    records = [
        make_record(1, "0xabc", "Guitar", "Painting"),
        make_record(2, "0xdef", "Long enough to be hashed by the ledger", "Cooking"),
    ]

    for view in await Reconciler(annotations).merge_all(records):
        assert view.teach_display.strip()
        assert view.learn_display.strip()


@pytest.mark.asyncio
async def test_merge_is_idempotent(annotations, make_record):
    annotations.put("0xabc", AnnotationEntry(learn_text="Painting"))
    reconciler = Reconciler(annotations)
    record = make_record(1, "0xABC", "Guitar", "Painting", packed=False)

    first = await reconciler.merge(record)
    second = await reconciler.merge(record)

    assert first == second
    assert first.identity == "0xabc"
    assert first.learn_source == DisplaySource.ANNOTATION
