# WORKFLOW: Shared fixtures for the regions loader test suite.
# Used by: every module under tests/
# Fixtures and builders:
# 1. region_xml() / dump_xml() - Build a regions dump in memory
# 2. gzip_bytes() / gzip_stream() - Compress a dump the way the live feed serves it
# 3. database_url / engine - Throwaway SQLite database per test
# 4. config - Settings pointed at that database with small chunks and commit batches
#
# Testing flow: Build XML -> gzip -> feed the pipeline -> inspect the SQLite file; nothing touches the network.

from __future__ import annotations

import gzip
import io
from typing import Dict, Iterable, Optional, Sequence, Tuple

import pytest

from core.config import Settings
from db.session import get_engine

Embassy = Tuple[str, Optional[str]]


def region_xml(
    name: str,
    numnations: str = "5",
    delegatevotes: str = "3",
    embassies: Optional[Sequence[Embassy]] = (),
    extra: str = "",
    omit: Iterable[str] = (),
    **fields: str,
) -> str:
    """Render one <REGION> element the way the daily dump does."""
    values: Dict[str, str] = {
        "NAME": name,
        "FACTBOOK": fields.get("factbook", f"Welcome to {name}."),
        "NUMNATIONS": numnations,
        "NATIONS": fields.get("nations", "alpha:beta"),
        "DELEGATE": fields.get("delegate", "alpha"),
        "DELEGATEVOTES": delegatevotes,
        "FOUNDER": fields.get("founder", "beta"),
        "POWER": fields.get("power", "High"),
        "FLAG": fields.get("flag", "https://www.nationstates.net/images/flags/uploads/rflags/x.png"),
    }
    omitted = {tag.upper() for tag in omit}
    parts = ["<REGION>"]
    for tag, value in values.items():
        if tag not in omitted:
            parts.append(f"<{tag}>{value}</{tag}>")
    if embassies is not None:
        parts.append("<EMBASSIES>")
        for embassy, kind in embassies:
            attr = f' type="{kind}"' if kind else ""
            parts.append(f"<EMBASSY{attr}>{embassy}</EMBASSY>")
        parts.append("</EMBASSIES>")
    parts.append(extra)
    parts.append("</REGION>")
    return "\n".join(parts)


def dump_xml(*regions: str) -> str:
    return '<?xml version="1.0" encoding="UTF-8"?>\n<REGIONS>\n' + "\n".join(regions) + "\n</REGIONS>\n"


def gzip_bytes(xml: str) -> bytes:
    return gzip.compress(xml.encode("utf-8"))


def gzip_stream(xml: str) -> io.BytesIO:
    return io.BytesIO(gzip_bytes(xml))


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'ns-db.sqlite'}"


@pytest.fixture
def engine(database_url):
    engine = get_engine(database_url, echo=False)
    yield engine
    engine.dispose()


@pytest.fixture
def config(database_url) -> Settings:
    return Settings(database_url=database_url, read_chunk_size=512, commit_every=2)
