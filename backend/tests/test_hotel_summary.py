"""Unit tests for candidate summary shaping and display helpers."""

from staygenie.services.hotel_summary import (
    apply_budget_filter,
    build_candidate_summaries,
    calculate_price_info,
    extract_images,
    has_offers,
    price_bracket,
    refundable_policy,
    top_amenities,
)
from tests.factories import make_candidate, make_rate_hotel, make_summary


class TestPriceInfo:
    def test_per_night_from_lowest_total(self):
        rate_hotel = make_rate_hotel("H1", total=300.0)
        rate_hotel["roomTypes"].append(
            {"rates": [{"retailRate": {"total": [{"amount": 450.0, "currency": "USD"}]}}]}
        )

        info = calculate_price_info(rate_hotel, nights=3)

        assert info.nightly_price == 100
        assert info.price_per_night.amount == 100
        assert info.price_per_night.total_amount == 300.0
        assert info.price_range.min == 300.0
        assert info.price_range.max == 450.0
        assert info.display == "100/night"

    def test_supplier_price_preferred(self):
        info = calculate_price_info(make_rate_hotel("H1", total=300.0, suggested=360.0), nights=2)

        assert info.price_per_night.amount == 180
        assert info.price_per_night.is_supplier_price is True
        assert info.price_per_night.provider == "Booking"
        assert info.display == "180/night (Booking)"

    def test_no_rates(self):
        info = calculate_price_info({"hotelId": "H1", "roomTypes": []}, nights=2)

        assert info.nightly_price is None
        assert info.price_per_night is None
        assert info.display == "Price not available"

    def test_price_bracket(self):
        assert price_bracket(None) == "?"
        assert price_bracket(80) == "$"
        assert price_bracket(150) == "$$"
        assert price_bracket(300) == "$$$"
        assert price_bracket(900) == "$$$$"


class TestRefundablePolicy:
    def test_refundable(self):
        assert refundable_policy(make_rate_hotel("H1", refundable_tag="RFN")) == (True, "Refundable rates available")

    def test_non_refundable(self):
        assert refundable_policy(make_rate_hotel("H1", refundable_tag="NRF")) == (False, "Non-refundable rates only")

    def test_mixed(self):
        rate_hotel = make_rate_hotel("H1", refundable_tag="RFN")
        rate_hotel["roomTypes"].extend(make_rate_hotel("H1", refundable_tag="NRF")["roomTypes"])

        assert refundable_policy(rate_hotel) == (True, "Mixed refund policies available")

    def test_no_rates(self):
        assert refundable_policy({}) == (False, "No rate information available")


class TestDisplayHelpers:
    def test_top_amenities_padded_with_defaults(self):
        assert top_amenities({"amenities": ["Pool"]}) == ["Pool", "Wi-Fi", "Air Conditioning"]
        assert top_amenities({}) == ["Wi-Fi", "Air Conditioning", "Private Bathroom"]
        assert top_amenities({"amenities": [{"name": "Spa"}, "Gym", "Bar", "Sauna"]}) == ["Spa", "Gym", "Bar"]

    def test_extract_images_dedupes_and_caps(self):
        details = {
            "main_photo": "https://img/main.jpg",
            "hotelImages": [{"urlHd": "https://img/hd1.jpg"}, {"url": "https://img/2.jpg"}, {"url": "https://img/main.jpg"}],
        }
        metadata = {"main_photo": "https://img/main.jpg", "thumbnail": "https://img/thumb.jpg"}

        images = extract_images(metadata, details)

        assert images == [
            "https://img/main.jpg",
            "https://img/hd1.jpg",
            "https://img/2.jpg",
            "https://img/thumb.jpg",
        ]

    def test_extract_images_without_details(self):
        assert extract_images({"main_photo": "https://img/m.jpg"}) == ["https://img/m.jpg"]

    def test_extract_images_cap(self):
        details = {"images": [f"https://img/{n}.jpg" for n in range(20)]}
        assert len(extract_images({}, details)) == 8


class TestCandidateSummaries:
    def test_joins_metadata_and_rates(self):
        candidates = [make_candidate(1, stars=5), make_candidate(2), make_candidate(3)]
        bookable = [make_rate_hotel("H1", total=400.0), make_rate_hotel("H3", total=200.0)]

        summaries = build_candidate_summaries(candidates, bookable, nights=2)

        assert [s.hotel_id for s in summaries] == ["H1", "H3"]
        first = summaries[0]
        assert first.index == 1
        assert first.star_rating == 5
        assert first.nightly_price == 200
        assert first.price_bracket == "$$$"
        assert first.top_amenities == ["Pool", "Spa", "Wi-Fi"]
        assert first.description.endswith("...")
        assert len(first.description) <= 103

    def test_rate_without_metadata_skipped(self):
        summaries = build_candidate_summaries([make_candidate(1)], [make_rate_hotel("H9")], nights=1)
        assert summaries == []

    def test_duplicate_rate_entries_collapsed(self):
        bookable = [make_rate_hotel("H1", total=100.0), make_rate_hotel("H1", total=900.0), make_rate_hotel("H2")]

        summaries = build_candidate_summaries([make_candidate(1), make_candidate(2)], bookable, nights=1)

        assert [s.hotel_id for s in summaries] == ["H1", "H2"]
        assert summaries[0].nightly_price == 100
        assert [s.index for s in summaries] == [1, 2]

    def test_has_offers(self):
        assert has_offers(make_rate_hotel("H1"))
        assert not has_offers({"hotelId": "H1", "roomTypes": [{"rates": []}]})


class TestBudgetFilter:
    def test_no_budget_keeps_everything(self):
        summaries = [make_summary(n) for n in range(5)]
        assert apply_budget_filter(summaries, None, None) == summaries

    def test_enough_within_budget(self):
        summaries = [make_summary(n, nightly=100) for n in range(25)] + [make_summary(99, nightly=500)]

        kept = apply_budget_filter(summaries, None, 150, min_pool=20)

        assert len(kept) == 25
        assert all(s.nightly_price <= 150 for s in kept)

    def test_tops_up_with_closest(self):
        within = [make_summary(n, nightly=100) for n in range(3)]
        near = make_summary(10, nightly=160)
        far = make_summary(11, nightly=900)
        unpriced = make_summary(12, nightly=None)

        kept = apply_budget_filter(within + [far, unpriced, near], None, 150, min_pool=5)

        assert [s.hotel_id for s in kept] == ["H0", "H1", "H2", "H10", "H11"]
