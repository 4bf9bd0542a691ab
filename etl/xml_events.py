# WORKFLOW: Event-driven XML reader and recoverable-error sink.
# Used by: Regions pipeline (etl/load_regions.py), record accumulator tests
# Components:
# 1. ElementOpen / ElementClose / Text - Plain parse events, independent of lxml
# 2. ParseIssue - One recoverable warning or error reported while parsing
# 3. ErrorSink - Collects ParseIssues for the lifetime of a run
# 4. iter_xml_events() - Feed a byte stream to lxml in chunks and yield events
#
# Reading flow: decompressed bytes -> lxml target parser (recover mode) -> events
# Markup errors are logged into the ErrorSink and parsing continues; only a failure
# of the underlying stream stops the run (FatalStreamError).

"""
Event-driven XML reader built on lxml's target parser interface.
"""

import logging
import zlib
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, Iterator, List, Optional, Tuple, Union

from lxml import etree

from core.errors import FatalStreamError

logger = logging.getLogger(__name__)

# libxml2 keeps at most this many errors per parser context
LIBXML2_ERROR_LIMIT = 100


@dataclass(frozen=True)
class ElementOpen:
    name: str
    attributes: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ElementClose:
    name: str


@dataclass(frozen=True)
class Text:
    chars: str


XmlEvent = Union[ElementOpen, ElementClose, Text]


@dataclass(frozen=True)
class ParseIssue:
    """A recoverable problem found while reading the dump."""
    level: str
    message: str
    line: Optional[int] = None
    column: Optional[int] = None

    @classmethod
    def from_log_entry(cls, entry) -> "ParseIssue":
        level = entry.level_name.lower()
        # libxml2 tags recovered errors FATAL; the parse went on, so they are errors
        if level == "fatal":
            level = "error"
        return cls(
            level=level,
            message=entry.message.strip(),
            line=entry.line,
            column=entry.column,
        )

    def __str__(self) -> str:
        if self.line is None:
            return f"{self.level}: {self.message}"
        return f"{self.level} at {self.line}:{self.column}: {self.message}"


class ErrorSink:
    """Collects recoverable parse warnings and errors; never interrupts a run."""

    def __init__(self):
        self._issues: List[ParseIssue] = []
        self.truncated = False

    def add(self, issue: ParseIssue) -> None:
        logger.debug(f"Recoverable parse issue: {issue}")
        self._issues.append(issue)

    @property
    def issues(self) -> Tuple[ParseIssue, ...]:
        return tuple(self._issues)

    def mark_truncated(self, message: str) -> None:
        """Record once that later parser issues were not reported."""
        if self.truncated:
            return
        self.truncated = True
        logger.warning(message)
        self.add(ParseIssue(level="warning", message=message))

    def __len__(self) -> int:
        return len(self._issues)

    def __iter__(self) -> Iterator[ParseIssue]:
        return iter(self.issues)


def local_name(tag: str) -> str:
    """Return the lower-cased tag name without its namespace."""
    if '}' in tag:
        tag = tag.split('}', 1)[1]
    return tag.lower()


class _EventCollector:
    """lxml parser target buffering events between two feed() calls."""

    def __init__(self):
        self.events: List[XmlEvent] = []

    def start(self, tag, attrib):
        self.events.append(ElementOpen(local_name(tag), dict(attrib)))

    def end(self, tag):
        self.events.append(ElementClose(local_name(tag)))

    def data(self, data):
        self.events.append(Text(data))

    def close(self):
        return None

    def drain(self) -> List[XmlEvent]:
        events, self.events = self.events, []
        return events


def _report_new_errors(parser: etree.XMLParser, sink: ErrorSink, reported: int) -> int:
    entries = list(parser.feed_error_log)
    for entry in entries[reported:]:
        sink.add(ParseIssue.from_log_entry(entry))
    if len(entries) >= LIBXML2_ERROR_LIMIT:
        sink.mark_truncated(
            f"libxml2 stops reporting after {LIBXML2_ERROR_LIMIT} errors per document; "
            f"later markup errors were suppressed"
        )
    return max(reported, len(entries))


def _report_syntax_error(parser: etree.XMLParser, sink: ErrorSink, reported: int,
                         error: etree.XMLSyntaxError) -> None:
    if _report_new_errors(parser, sink, reported) == reported:
        line, column = getattr(error, "position", (None, None))
        sink.add(ParseIssue(level="fatal", message=str(error), line=line, column=column))


def iter_xml_events(stream: BinaryIO, sink: ErrorSink, chunk_size: int = 64 * 1024) -> Iterator[XmlEvent]:
    """
    Tokenize an XML byte stream into open/close/text events in document order.

    Args:
        stream: Readable binary stream of (decompressed) XML
        sink: ErrorSink receiving every recoverable markup problem
        chunk_size: Number of bytes read from the stream per parser feed

    Yields:
        ElementOpen, ElementClose and Text events

    Raises:
        FatalStreamError: If reading from the stream fails
    """
    collector = _EventCollector()
    parser = etree.XMLParser(
        target=collector,
        recover=True,
        huge_tree=True,
        resolve_entities=False,
        no_network=True,
    )
    reported = 0

    while True:
        try:
            chunk = stream.read(chunk_size)
        except (OSError, EOFError, ValueError, zlib.error) as e:
            logger.error(f"Dump stream failed after {reported} parse issues: {e}")
            raise FatalStreamError(f"Failed to read dump stream: {e}") from e
        if not chunk:
            break
        try:
            parser.feed(chunk)
        except etree.XMLSyntaxError as e:
            # recover mode gave up on the document; keep what was parsed
            _report_syntax_error(parser, sink, reported, e)
            yield from collector.drain()
            return
        reported = _report_new_errors(parser, sink, reported)
        yield from collector.drain()

    try:
        parser.close()
    except etree.XMLSyntaxError as e:
        _report_syntax_error(parser, sink, reported, e)
    else:
        _report_new_errors(parser, sink, reported)
    yield from collector.drain()
