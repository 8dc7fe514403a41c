import asyncio

import pytest

from formwise.matching import CompressedField, CompressedRecord, FallbackMatcher, round_confidence
from formwise.matching.fallback import tokenize


def email_field(field_id: str = "__0") -> CompressedField:
    return CompressedField(id=field_id, type="email", purpose="email", labels=["Email Address"], context="email")


def email_record() -> CompressedRecord:
    return CompressedRecord(id="r1", question="What's your email?", answer="a@b.com", category="contact")


def test_email_field_matches_email_record() -> None:
    [mapping] = FallbackMatcher().match([email_field()], [email_record()])

    assert mapping.field_id == "__0"
    assert mapping.record_id == "r1"
    assert mapping.value == "a@b.com"
    assert mapping.confidence == pytest.approx(0.6)
    assert mapping.reasoning == 'Purpose "email" matches record context · 1 shared keywords with record question'
    assert mapping.alternatives == []


def test_email_field_without_context_still_matches_on_purpose_and_label() -> None:
    field = CompressedField(id="__0", type="email", purpose="email", labels=["Email Address"])

    [mapping] = FallbackMatcher().match([field], [email_record()])

    assert mapping.record_id == "r1"
    assert mapping.value == "a@b.com"
    assert mapping.confidence == pytest.approx(0.45)
    assert mapping.reasoning == 'Purpose "email" matches record context'


def test_unrelated_field_has_no_candidate() -> None:
    field = CompressedField(id="__3", type="text", purpose="unknown", labels=["Favorite Book"])

    [mapping] = FallbackMatcher().match([field], [email_record()])

    assert mapping.record_id is None
    assert mapping.value is None
    assert mapping.confidence == 0.0
    assert mapping.reasoning == "No matching record found"


def test_low_confidence_match_is_reported_without_a_value() -> None:
    field = CompressedField(id="__1", type="text", purpose="unknown", labels=["Contact"])
    record = CompressedRecord(id="r9", question="preferred contact", answer="phone", category="contact")

    [mapping] = FallbackMatcher().match([field], [record])

    assert mapping.record_id is None
    assert mapping.value is None
    assert mapping.confidence == pytest.approx(0.21)
    assert mapping.reasoning == 'Low confidence match (21%). Category "contact" found in field labels'


def test_weak_match_reason_when_no_signal_is_named() -> None:
    field = CompressedField(id="__1", type="text", purpose="unknown", labels=["Favourite colour"])
    record = CompressedRecord(id="r2", question="What colour do you like?", answer="Blue")

    [mapping] = FallbackMatcher().match([field], [record])

    assert mapping.confidence == pytest.approx(0.05)
    assert mapping.reasoning.endswith("Weak match based on partial context overlap")


def test_alternatives_are_capped_and_exclude_primary() -> None:
    records = [
        email_record(),
        CompressedRecord(id="r2", question="Work email", answer="w@b.com"),
        CompressedRecord(id="r3", question="Backup mail", answer="x@b.com"),
        CompressedRecord(id="r4", question="Email for invoices", answer="y@b.com"),
        CompressedRecord(id="r5", question="Newsletter email", answer="z@b.com"),
    ]

    [mapping] = FallbackMatcher().match([email_field()], records)

    assert mapping.record_id == "r1"
    assert len(mapping.alternatives) == 3
    assert "r1" not in {alternative.record_id for alternative in mapping.alternatives}
    assert all(alternative.confidence <= mapping.confidence for alternative in mapping.alternatives)


def test_ties_keep_record_order_and_results_are_deterministic() -> None:
    records = [
        CompressedRecord(id="first", question="Email", answer="one@b.com"),
        CompressedRecord(id="second", question="Email", answer="two@b.com"),
    ]
    matcher = FallbackMatcher()

    runs = [[mapping.to_dict() for mapping in matcher.match([email_field()], records)] for _ in range(3)]

    assert runs[0] == runs[1] == runs[2]
    assert runs[0][0]["record_id"] == "first"
    assert runs[0][0]["alternatives"][0]["record_id"] == "second"


def test_one_mapping_per_field_in_input_order() -> None:
    fields = [
        CompressedField(id="__2", type="text", purpose="unknown", labels=["Favorite Book"]),
        email_field("__0"),
        CompressedField(id="__1", type="tel", purpose="phone", labels=["Phone"]),
    ]

    mappings = FallbackMatcher().match(fields, [email_record()])

    assert [mapping.field_id for mapping in mappings] == ["__2", "__0", "__1"]


def test_malformed_and_duplicate_records_are_skipped() -> None:
    records = [
        {"id": "broken"},
        {"answer": "orphan"},
        "junk",
        {"id": "r1", "question": "What's your email?", "answer": "a@b.com", "category": "contact"},
        {"id": "r1", "question": "Email again", "answer": "dupe@b.com"},
    ]

    [mapping] = FallbackMatcher().match([email_field()], records)

    assert mapping.record_id == "r1"
    assert mapping.value == "a@b.com"
    assert mapping.alternatives == []


def test_no_records_gives_empty_mappings() -> None:
    mappings = FallbackMatcher().match([email_field("__0"), email_field("__1")], [])

    assert [(mapping.field_id, mapping.record_id, mapping.reasoning) for mapping in mappings] == [
        ("__0", None, "No records available"),
        ("__1", None, "No records available"),
    ]


def test_internal_error_returns_error_mappings() -> None:
    class ExplodingMatcher(FallbackMatcher):
        def match_single_field(self, field, records):
            raise RuntimeError("boom")

    mappings = ExplodingMatcher().match([email_field()], [email_record()])

    assert [(mapping.record_id, mapping.reasoning) for mapping in mappings] == [(None, "Fallback matching error")]


def test_async_entry_point_matches_sync_result() -> None:
    matcher = FallbackMatcher()

    async_result = asyncio.run(matcher.match_fields([email_field()], [email_record()]))

    assert [mapping.to_dict() for mapping in async_result] == [
        mapping.to_dict() for mapping in matcher.match([email_field()], [email_record()])
    ]


def test_tokenize_drops_stop_words_and_short_tokens() -> None:
    assert tokenize("Please enter your E-mail address!") == {"mail", "address"}
    assert tokenize("") == set()


@pytest.mark.parametrize(
    ("value", "expected"),
    [(1.2, 1.0), (-0.3, 0.0), (0.125, 0.13), (0.6, 0.6), (0.214, 0.21)],
)
def test_round_confidence(value, expected) -> None:
    assert round_confidence(value) == pytest.approx(expected)
