from __future__ import annotations

from decimal import Decimal

import pytest

from offersync.domain.codec import OfferCodec
from offersync.domain.model import OfferChanged, OfferDocument, OfferPatch
from tests.helpers.ledger import make_created, make_snapshot


def test_created_event_becomes_unbought_document(codec: OfferCodec) -> None:
    document = codec.from_created(make_created("0xa", price=100))

    assert document.price == Decimal("1.00")
    assert document.to_source() == {
        "offer": "0xa",
        "seller": "0xseller",
        "title": "Lamp",
        "price": 1.0,
        "category": "home",
        "shipsFrom": "DE",
        "attachedFiles": "ipfs://files",
        "bought": False,
        "buyer": None,
    }


def test_default_codec_converts_wei_to_ether() -> None:
    codec = OfferCodec()

    assert codec.to_canonical_price(10**18) == Decimal(1)
    assert codec.to_canonical_price(15 * 10**17) == Decimal("1.5")


def test_changed_event_only_carries_present_fields(codec: OfferCodec) -> None:
    patch = codec.from_changed(OfferChanged(offer="0xa", title="Desk lamp", ships_from="FR"))

    assert patch.to_source() == {"title": "Desk lamp", "shipsFrom": "FR"}


def test_changed_price_is_converted(codec: OfferCodec) -> None:
    patch = codec.from_changed(OfferChanged(offer="0xa", price=250))

    assert patch.to_source() == {"price": 2.5}


def test_changed_event_without_fields_is_rejected(codec: OfferCodec) -> None:
    with pytest.raises(ValueError, match="no fields"):
        codec.from_changed(OfferChanged(offer="0xa"))


def test_snapshot_keeps_buyer_only_when_bought(codec: OfferCodec) -> None:
    bought = codec.from_snapshot(make_snapshot("0xa", bought=True, buyer="0xbuyer"))
    unbought = codec.from_snapshot(make_snapshot("0xb", bought=False, buyer="0xstale"))

    assert (bought.bought, bought.buyer) == (True, "0xbuyer")
    assert (unbought.bought, unbought.buyer) == (False, None)


def test_bought_toggle_patches() -> None:
    assert OfferCodec.bought_patch("0xa", "0xbuyer").to_source() == {
        "bought": True,
        "buyer": "0xbuyer",
    }
    assert OfferCodec.unbought_patch("0xa").to_source() == {"bought": False, "buyer": None}


def test_document_rejects_buyer_without_bought() -> None:
    with pytest.raises(ValueError, match="buyer"):
        OfferDocument(
            offer="0xa",
            seller="0xseller",
            title="Lamp",
            price=Decimal(1),
            category="home",
            ships_from="DE",
            attached_files="",
            bought=False,
            buyer="0xbuyer",
        )


def test_document_source_round_trip_keeps_price(codec: OfferCodec) -> None:
    document = codec.from_created(make_created("0xa", price=199))

    restored = OfferDocument.from_source(document.to_source())

    assert restored.price == Decimal("1.99")
    assert restored.ships_from == "DE"


def test_later_patch_wins_when_merged() -> None:
    first = OfferPatch(offer="0xa", changes={"title": "Old", "price": Decimal(1)})
    second = OfferPatch(offer="0xa", changes={"title": "New"})

    merged = first.merged_with(second)

    assert merged.changes == {"title": "New", "price": Decimal(1)}
    with pytest.raises(ValueError, match="Cannot merge"):
        first.merged_with(OfferPatch(offer="0xb", changes={"title": "x"}))
