# WORKFLOW: Region record accumulator tests.
# Used by: CI, development testing
# Test scenarios:
# 1. Records are emitted once per </REGION> with update_order in document order
# 2. Embassy list handling and typed-embassy filtering
# 3. Text fragment joining and field reset or carry-over
# 4. Numeric validation, aborting or skipping invalid records
# 5. Unknown element warnings
#
# Testing flow: Hand-built events -> RegionAccumulator.feed() -> assert results; lxml is not involved.

from __future__ import annotations

from typing import Dict, List, Optional

import pytest

from core.errors import RecordValidationError
from etl.region_parser import (
    AccumulatorState,
    ErrorNoted,
    RecordCompleted,
    RegionAccumulator,
    slugify,
)
from etl.xml_events import ElementClose, ElementOpen, Text


def element(name: str, text: Optional[str] = None, attrs: Optional[Dict[str, str]] = None) -> list:
    events = [ElementOpen(name, attrs or {})]
    if text is not None:
        events.append(Text(text))
    events.append(ElementClose(name))
    return events


def region_events(name: str, numnations: str = "4", delegatevotes: str = "2",
                  embassies: Optional[List] = None, skip: tuple = ()) -> list:
    fields = {
        "name": name,
        "factbook": "Factbook",
        "numnations": numnations,
        "nations": "a:b",
        "delegate": "a",
        "delegatevotes": delegatevotes,
        "founder": "b",
        "power": "Low",
        "flag": "flag.png",
    }
    events = [ElementOpen("region", {}), Text("\n")]
    for tag, value in fields.items():
        if tag not in skip:
            events.extend(element(tag, value))
            events.append(Text("\n"))
    if embassies is not None:
        events.append(ElementOpen("embassies", {}))
        for embassy in embassies:
            if isinstance(embassy, tuple):
                events.extend(element("embassy", embassy[0], {"type": embassy[1]}))
            else:
                events.extend(element("embassy", embassy))
        events.append(ElementClose("embassies"))
    events.append(ElementClose("region"))
    return events


def feed_all(accumulator: RegionAccumulator, events: list) -> list:
    results = []
    for event in events:
        results.extend(accumulator.feed(event))
    return results


def records(results: list) -> list:
    return [result.record for result in results if isinstance(result, RecordCompleted)]


def test_slugify_lowercases_and_replaces_spaces():
    assert slugify("The North Pacific") == "the_north_pacific"
    assert slugify("Lazarus") == "lazarus"


def test_region_is_emitted_once_on_close():
    accumulator = RegionAccumulator()
    events = region_events("The North Pacific", embassies=["Balder", "Osiris"])

    results = feed_all(accumulator, events[:-1])
    assert results == []

    results = accumulator.feed(events[-1])
    assert len(results) == 1
    record = results[0].record
    assert record.name == "the_north_pacific"
    assert record.title == "The North Pacific"
    assert record.numnations == 4
    assert record.delegatevotes == 2
    assert record.embassies == "Balder:Osiris"
    assert record.update_order == 0
    assert accumulator.state is AccumulatorState.IDLE


def test_update_order_follows_document_order():
    accumulator = RegionAccumulator()
    events = []
    for name in ("Alpha", "Beta", "Gamma"):
        events.extend(region_events(name, embassies=[]))

    emitted = records(feed_all(accumulator, events))

    assert [r.name for r in emitted] == ["alpha", "beta", "gamma"]
    assert [r.update_order for r in emitted] == [0, 1, 2]


def test_typed_embassy_contributes_nothing():
    accumulator = RegionAccumulator()
    events = region_events("Lazarus", embassies=["A", ("Pending Place", "pending"), "B"])

    record = records(feed_all(accumulator, events))[0]

    assert record.embassies == "A:B"


def test_no_embassies_serializes_to_empty_string():
    accumulator = RegionAccumulator()

    record = records(feed_all(accumulator, region_events("Lonely", embassies=[])))[0]

    assert record.embassies == ""


def test_embassies_list_is_only_cleared_by_container():
    accumulator = RegionAccumulator()
    events = region_events("First", embassies=["Shared"]) + region_events("Second", embassies=None)

    first, second = records(feed_all(accumulator, events))

    assert first.embassies == "Shared"
    assert second.embassies == "Shared"


def test_text_fragments_are_joined():
    accumulator = RegionAccumulator()
    events = [ElementOpen("region", {}), ElementOpen("name", {}), Text("The North"),
              Text(" Pacific"), ElementClose("name")]
    events += region_events("ignored", skip=("name",))[1:]

    record = records(feed_all(accumulator, events))[0]

    assert record.title == "The North Pacific"


def test_embassies_state_transitions():
    accumulator = RegionAccumulator()
    accumulator.feed(ElementOpen("region", {}))
    assert accumulator.state is AccumulatorState.IN_RECORD
    accumulator.feed(ElementOpen("embassies", {}))
    assert accumulator.state is AccumulatorState.IN_EMBASSIES
    accumulator.feed(ElementClose("embassies"))
    assert accumulator.state is AccumulatorState.IN_RECORD


def test_non_numeric_count_aborts_by_default():
    accumulator = RegionAccumulator()

    with pytest.raises(RecordValidationError) as excinfo:
        feed_all(accumulator, region_events("Broken", numnations="many"))

    assert excinfo.value.fields["title"] == "Broken"
    assert "numnations" in str(excinfo.value)


@pytest.mark.parametrize("value", ["1.0", "1_000", "1e3", "", "12 3"])
@pytest.mark.parametrize("field", ["numnations", "delegatevotes"])
def test_count_must_be_plain_integer_text(field, value):
    accumulator = RegionAccumulator()

    with pytest.raises(RecordValidationError) as excinfo:
        feed_all(accumulator, region_events("Broken", **{field: value}))

    assert field in str(excinfo.value)


@pytest.mark.parametrize("value, expected", [("12", 12), ("+3", 3), ("-1", -1), (" 7\n", 7)])
def test_signed_and_padded_counts_are_accepted(value, expected):
    accumulator = RegionAccumulator()

    record = records(feed_all(accumulator, region_events("Counted", numnations=value)))[0]

    assert record.numnations == expected


def test_invalid_record_is_skipped_when_configured():
    accumulator = RegionAccumulator(skip_invalid_records=True)
    events = (region_events("Good", embassies=[])
              + region_events("Broken", delegatevotes="lots", embassies=[])
              + region_events("Also Good", embassies=[]))

    results = feed_all(accumulator, events)

    noted = [result for result in results if isinstance(result, ErrorNoted)]
    assert len(noted) == 1
    assert noted[0].issue.level == "error"
    assert "delegatevotes" in noted[0].issue.message
    assert [(r.name, r.update_order) for r in records(results)] == [("good", 0), ("also_good", 1)]
    assert accumulator.records_skipped == 1


def test_missing_name_fails_validation():
    accumulator = RegionAccumulator()

    with pytest.raises(RecordValidationError):
        feed_all(accumulator, region_events("Nameless", skip=("name",)))


def test_missing_field_is_reset_between_records():
    accumulator = RegionAccumulator()
    events = region_events("First") + region_events("Second", skip=("founder", "power"))

    first, second = records(feed_all(accumulator, events))

    assert first.founder == "b"
    assert second.founder is None
    assert second.power is None


def test_carry_over_keeps_previous_value():
    accumulator = RegionAccumulator(carry_over_fields=True)
    events = region_events("First") + region_events("Second", skip=("founder",))

    first, second = records(feed_all(accumulator, events))

    assert second.founder == first.founder == "b"


def test_empty_element_does_not_inherit_previous_text():
    accumulator = RegionAccumulator()
    events = [ElementOpen("region", {})]
    events += element("name", "Quiet")
    events += element("founder")
    events += region_events("x", skip=("name", "founder"))[1:]

    record = records(feed_all(accumulator, events))[0]

    assert record.founder == ""


def test_unknown_element_is_reported_as_warning():
    accumulator = RegionAccumulator()
    events = region_events("Noisy")
    events[2:2] = element("banner", "b.png")

    results = feed_all(accumulator, events)

    warnings = [result.issue for result in results if isinstance(result, ErrorNoted)]
    assert len(warnings) == 1
    assert warnings[0].level == "warning"
    assert "banner" in warnings[0].message
    assert len(records(results)) == 1


def test_unknown_element_reporting_can_be_disabled():
    accumulator = RegionAccumulator(report_unknown_elements=False)
    events = region_events("Noisy")
    events[2:2] = element("banner", "b.png")

    results = feed_all(accumulator, events)

    assert not any(isinstance(result, ErrorNoted) for result in results)
