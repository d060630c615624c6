from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import pandas

from config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_FAMILY_SUFFIX = "ко"

GIVEN_NAME_COLUMNS = ("Given Name", "First Name", "given_name")
FAMILY_NAME_COLUMNS = ("Family Name", "Last Name", "family_name")


@dataclass(frozen=True)
class Contact:
    given_name: str
    family_name: str

    @property
    def display_name(self) -> str:
        return " ".join(part for part in (self.given_name, self.family_name) if part)


# --------------------------------------------------------------------------- #
# vCard
# --------------------------------------------------------------------------- #
def _unfold(lines: Iterable[str]) -> List[str]:
    """Join vCard continuation lines (those starting with whitespace)."""
    unfolded: List[str] = []
    for raw in lines:
        line = raw.rstrip("\r\n")
        if line[:1] in (" ", "\t") and unfolded:
            unfolded[-1] += line[1:]
        else:
            unfolded.append(line)
    return unfolded


def _split_property(line: str) -> Optional[Tuple[str, str]]:
    if ":" not in line:
        return None
    head, value = line.split(":", 1)
    name = head.split(";", 1)[0]
    # Grouped properties look like "item1.N".
    name = name.rsplit(".", 1)[-1].upper()
    return name, value


def _split_formatted_name(formatted: str) -> Tuple[str, str]:
    parts = formatted.split()
    if len(parts) < 2:
        return formatted.strip(), ""
    return " ".join(parts[:-1]), parts[-1]


def parse_vcards(text: str) -> List[Contact]:
    contacts: List[Contact] = []
    given: Optional[str] = None
    family: Optional[str] = None
    formatted: Optional[str] = None
    inside = False

    for line in _unfold(text.splitlines()):
        parsed = _split_property(line)
        if parsed is None:
            continue
        name, value = parsed
        if name == "BEGIN" and value.strip().upper() == "VCARD":
            inside = True
            given = family = formatted = None
        elif name == "END" and value.strip().upper() == "VCARD":
            if inside:
                if family is None and given is None and formatted:
                    given, family = _split_formatted_name(formatted)
                if given or family:
                    contacts.append(Contact(given_name=given or "", family_name=family or ""))
            inside = False
        elif inside and name == "N":
            components = value.split(";")
            family = components[0].strip()
            given = components[1].strip() if len(components) > 1 else ""
        elif inside and name == "FN":
            formatted = value.strip()
    return contacts


# --------------------------------------------------------------------------- #
# CSV exports
# --------------------------------------------------------------------------- #
def _first_column(frame: pandas.DataFrame, candidates: Iterable[str]) -> Optional[str]:
    for column in candidates:
        if column in frame.columns:
            return column
    return None


def parse_contacts_frame(frame: pandas.DataFrame) -> List[Contact]:
    given_column = _first_column(frame, GIVEN_NAME_COLUMNS)
    family_column = _first_column(frame, FAMILY_NAME_COLUMNS)
    if given_column is None and family_column is None:
        logger.warning("Contacts spreadsheet has no recognised name columns: %s", list(frame.columns))
        return []
    frame = frame.fillna("")
    contacts: List[Contact] = []
    for _, row in frame.iterrows():
        given = str(row[given_column]).strip() if given_column else ""
        family = str(row[family_column]).strip() if family_column else ""
        if given or family:
            contacts.append(Contact(given_name=given, family_name=family))
    return contacts


# --------------------------------------------------------------------------- #
# Public API
# --------------------------------------------------------------------------- #
def load_contacts(path: Optional[Path] = None) -> List[Contact]:
    """Read the address book export; an unreadable source yields no contacts."""
    source = Path(path or get_settings().contacts_path)
    if not source.exists():
        logger.warning("Contacts are not available: %s does not exist", source)
        return []

    try:
        if source.suffix.lower() == ".csv":
            contacts = parse_contacts_frame(pandas.read_csv(source, dtype=str))
        else:
            contacts = parse_vcards(source.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, pandas.errors.ParserError, pandas.errors.EmptyDataError) as error:
        logger.error("Unable to read contacts from %s: %s", source, error)
        return []

    logger.info("Loaded %d contacts from %s", len(contacts), source)
    return contacts


def filter_by_family_suffix(contacts: Iterable[Contact], suffix: str = DEFAULT_FAMILY_SUFFIX) -> List[Contact]:
    return [contact for contact in contacts if contact.family_name.endswith(suffix)]
