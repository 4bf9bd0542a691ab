# WORKFLOW: Region record accumulator (state machine over XML events).
# Used by: Regions pipeline (etl/load_regions.py)
# Components:
# 1. slugify() - Derive the region identifier from its display name
# 2. RegionRecord - Validated, finalized region row
# 3. RecordCompleted / ErrorNoted - Results emitted by the accumulator
# 4. RegionAccumulator - Consumes ElementOpen/ElementClose/Text, emits results
#
# Accumulation flow: events -> text buffer -> record fields -> </REGION> -> validate
# -> assign update_order -> RecordCompleted
# The accumulator knows nothing about lxml; it only sees etl.xml_events events.

"""
Region record accumulator for the regions dump.
"""

import enum
import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.errors import RecordValidationError
from etl.xml_events import ElementClose, ElementOpen, ParseIssue, Text, XmlEvent

logger = logging.getLogger(__name__)

RECORD_ELEMENT = "region"
EMBASSIES_ELEMENT = "embassies"
EMBASSY_ELEMENT = "embassy"
EMBASSY_TYPE_ATTRIBUTE = "type"
EMBASSY_DELIMITER = ":"

# optional sign and ASCII digits; no decimals, exponents or underscores
INTEGER_PATTERN = re.compile(r"^[+-]?[0-9]+$")

FIELD_ELEMENTS = (
    "name",
    "factbook",
    "numnations",
    "nations",
    "delegate",
    "delegatevotes",
    "founder",
    "power",
    "flag",
)

KNOWN_ELEMENTS = frozenset(FIELD_ELEMENTS + ("regions", RECORD_ELEMENT, EMBASSIES_ELEMENT, EMBASSY_ELEMENT))


def slugify(title: str) -> str:
    """'The North Pacific' -> 'the_north_pacific'"""
    return title.lower().replace(" ", "_")


class RegionRecord(BaseModel):
    """One finalized row of the regions table."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    title: str
    factbook: Optional[str] = None
    numnations: int
    nations: Optional[str] = None
    delegate: Optional[str] = None
    delegatevotes: int
    founder: Optional[str] = None
    power: Optional[str] = None
    flag: Optional[str] = None
    embassies: str = ""
    update_order: int = Field(..., ge=0)

    @field_validator("numnations", "delegatevotes", mode="before")
    @classmethod
    def check_integer_text(cls, value):
        if isinstance(value, str) and not INTEGER_PATTERN.fullmatch(value):
            raise ValueError(f"not an integer: {value!r}")
        return value


@dataclass(frozen=True)
class RecordCompleted:
    record: RegionRecord


@dataclass(frozen=True)
class ErrorNoted:
    issue: ParseIssue


AccumulatorResult = Union[RecordCompleted, ErrorNoted]


class AccumulatorState(enum.Enum):
    IDLE = "idle"
    IN_RECORD = "in_record"
    IN_EMBASSIES = "in_embassies"


class RegionAccumulator:
    """
    Rebuilds region records from a stream of XML events.

    Text handling: the first Text event after any open or close replaces the
    buffer, later Text events append to it, so an element's text may arrive in
    several fragments.

    The embassies list is only cleared when an <EMBASSIES> element opens.
    Scalar fields are reset when a <REGION> opens unless ``carry_over_fields``
    is set, in which case a field missing from a record keeps the value of the
    previous record.
    """

    def __init__(self, carry_over_fields: bool = False, skip_invalid_records: bool = False,
                 report_unknown_elements: bool = True):
        self.carry_over_fields = carry_over_fields
        self.skip_invalid_records = skip_invalid_records
        self.report_unknown_elements = report_unknown_elements

        self.state = AccumulatorState.IDLE
        self.records_emitted = 0
        self.records_skipped = 0

        self._buffer: List[str] = []
        self._replace_text = True
        self._fields: Dict[str, Optional[str]] = {}
        self._embassies: List[str] = []
        self._discard_embassy = False

    @property
    def text(self) -> str:
        return "".join(self._buffer)

    def feed(self, event: XmlEvent) -> List[AccumulatorResult]:
        """Apply one event and return the results it produced (usually none)."""
        if isinstance(event, Text):
            self._on_text(event.chars)
            return []
        if isinstance(event, ElementOpen):
            return self._on_open(event.name, event.attributes)
        if isinstance(event, ElementClose):
            return self._on_close(event.name)
        raise TypeError(f"Unsupported XML event: {event!r}")

    def _on_text(self, chars: str) -> None:
        if self._replace_text:
            self._buffer = [chars]
            self._replace_text = False
        else:
            self._buffer.append(chars)

    def _on_open(self, name: str, attributes: Dict[str, str]) -> List[AccumulatorResult]:
        results: List[AccumulatorResult] = []
        if name == RECORD_ELEMENT:
            self.state = AccumulatorState.IN_RECORD
            if not self.carry_over_fields:
                self._fields = {}
        elif name == EMBASSIES_ELEMENT:
            self._embassies.clear()
            self.state = AccumulatorState.IN_EMBASSIES
        elif name == EMBASSY_ELEMENT:
            if attributes.get(EMBASSY_TYPE_ATTRIBUTE) is not None:
                self._discard_embassy = True
        elif name not in KNOWN_ELEMENTS and self.report_unknown_elements:
            results.append(ErrorNoted(ParseIssue(
                level="warning",
                message=f"Unrecognized element <{name}> ignored ({self.state.value})",
            )))

        self._replace_text = True
        if not self.carry_over_fields:
            # an empty element must not inherit the previous element's text
            self._buffer = []
        return results

    def _on_close(self, name: str) -> List[AccumulatorResult]:
        self._replace_text = True
        if name in FIELD_ELEMENTS:
            self._fields[name] = self.text
        elif name == EMBASSY_ELEMENT:
            if self._discard_embassy:
                self._discard_embassy = False
            else:
                self._embassies.append(self.text)
        elif name == EMBASSIES_ELEMENT:
            self.state = AccumulatorState.IN_RECORD
        elif name == RECORD_ELEMENT:
            self.state = AccumulatorState.IDLE
            return self._finalize()
        return []

    def _finalize(self) -> List[AccumulatorResult]:
        title = self._fields.get("name")
        values = {
            "name": slugify(title) if title is not None else None,
            "title": title,
            "factbook": self._fields.get("factbook"),
            "numnations": _strip(self._fields.get("numnations")),
            "nations": self._fields.get("nations"),
            "delegate": self._fields.get("delegate"),
            "delegatevotes": _strip(self._fields.get("delegatevotes")),
            "founder": self._fields.get("founder"),
            "power": self._fields.get("power"),
            "flag": self._fields.get("flag"),
            "embassies": EMBASSY_DELIMITER.join(self._embassies),
            "update_order": self.records_emitted,
        }
        try:
            record = RegionRecord.model_validate(values)
        except ValidationError as e:
            message = f"Invalid region record {title!r}: {_summarize(e)}"
            if not self.skip_invalid_records:
                logger.error(message)
                raise RecordValidationError(message, values) from e
            self.records_skipped += 1
            logger.warning(f"Skipping {message}")
            return [ErrorNoted(ParseIssue(level="error", message=message))]

        self.records_emitted += 1
        logger.debug(f"Finalized region {record.name} as update_order {record.update_order}")
        return [RecordCompleted(record)]


def _strip(value: Optional[str]) -> Optional[str]:
    return value.strip() if value is not None else None


def _summarize(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in error.errors()
    )
