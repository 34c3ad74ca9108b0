"""
DMARC aggregate report parser (RFC 7489).

Supports ZIP-compressed, GZ-compressed, and plain XML reports.
"""

from __future__ import annotations

import gzip
import io
import logging
import zipfile
import xml.etree.ElementTree as ET
from datetime import datetime, timezone

from dmarcdesk.utils.common import ALIGN_RESULTS, DISPOSITIONS

logger = logging.getLogger(__name__)


def parse_dmarc_attachment(filename: str, data: bytes) -> dict | None:
    """Parse a DMARC aggregate report file.

    Accepts ZIP, GZ, or raw XML.  Returns a normalised dict or None if
    the format is unrecognised or the content is not a valid DMARC report.

    Args:
        filename: Original file name (used to detect format).
        data: Raw bytes of the file.

    Returns:
        Normalised report dict or None.
    """
    xml_bytes = _decompress(filename.lower(), data)
    if xml_bytes is None:
        logger.warning("parse_dmarc_attachment: unsupported format for %r", filename)
        return None
    return _parse_xml(xml_bytes)


# ---------------------------------------------------------------------------
# Decompression
# ---------------------------------------------------------------------------


def _decompress(filename: str, data: bytes) -> bytes | None:
    """Return raw XML bytes from the (possibly compressed) file."""
    if filename.endswith(".zip"):
        return _unzip(data)
    if filename.endswith(".gz"):
        try:
            return gzip.decompress(data)
        except (OSError, EOFError) as exc:
            logger.warning("GZ decompression failed: %s", exc)
            return None
    if filename.endswith(".xml"):
        return data
    # Sniff the magic bytes, then treat as raw XML
    if data[:4] == b"PK\x03\x04":
        return _unzip(data)
    if data[:2] == b"\x1f\x8b":
        try:
            return gzip.decompress(data)
        except (OSError, EOFError):
            return None
    return data


def _unzip(data: bytes) -> bytes | None:
    """Extract the first XML-like file from a ZIP archive."""
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            names = zf.namelist()
            for name in names:
                if name.lower().endswith((".xml", ".dmarc")):
                    return zf.read(name)
            if names:
                return zf.read(names[0])
    except (zipfile.BadZipFile, OSError) as exc:
        logger.debug("ZIP extraction failed: %s", exc)
    return None


# ---------------------------------------------------------------------------
# XML parsing
# ---------------------------------------------------------------------------


def _parse_xml(xml_bytes: bytes) -> dict | None:
    """Parse DMARC XML and return a normalised dict."""
    try:
        root = ET.fromstring(xml_bytes)
    except ET.ParseError as exc:
        logger.warning("XML parse error: %s", exc)
        return None

    # Drop XML namespaces so that RFC 7489 bis documents parse the same way.
    for elem in root.iter():
        if isinstance(elem.tag, str) and "}" in elem.tag:
            elem.tag = elem.tag.split("}", 1)[1]

    feedback = root if root.tag == "feedback" else root.find("feedback")
    if feedback is None:
        logger.warning("Missing <feedback>")
        return None

    # ------------------------------------------------------------------
    # report_metadata
    # ------------------------------------------------------------------
    meta = feedback.find("report_metadata")
    if meta is None:
        logger.warning("Missing <report_metadata>")
        return None

    report_id = _text(meta, "report_id") or ""
    org_name = _text(meta, "org_name") or ""
    email = _text(meta, "email") or ""
    if not report_id or not org_name:
        logger.warning("Missing report_id or org_name")
        return None

    date_range = meta.find("date_range")
    try:
        begin_ts = int(_text(date_range, "begin") or 0)
        end_ts = int(_text(date_range, "end") or 0)
    except ValueError:
        logger.warning("Incorrect <date_range> in report %r", report_id)
        return None

    try:
        begin_date = datetime.fromtimestamp(begin_ts, tz=timezone.utc)
        end_date = datetime.fromtimestamp(end_ts, tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        logger.warning("Out of range <date_range> in report %r", report_id)
        return None

    # ------------------------------------------------------------------
    # policy_published
    # ------------------------------------------------------------------
    policy = feedback.find("policy_published")
    policy_domain = (_text(policy, "domain") or "").lower()
    if not policy_domain:
        logger.warning("Missing policy domain in report %r", report_id)
        return None
    published_pct_str = _text(policy, "pct")
    policy_published = {
        "adkim": _text(policy, "adkim") or "",
        "aspf": _text(policy, "aspf") or "",
        "p": _text(policy, "p") or "",
        "sp": _text(policy, "sp") or "",
        "pct": int(published_pct_str) if published_pct_str and published_pct_str.isdigit() else None,
        "fo": _text(policy, "fo") or "",
    }

    # ------------------------------------------------------------------
    # record[]
    # ------------------------------------------------------------------
    records: list[dict] = []
    for record in feedback.findall("record"):
        row = record.find("row")
        if row is None:
            continue

        try:
            count = int(_text(row, "count") or 0)
        except ValueError:
            count = 0

        policy_eval = row.find("policy_evaluated")
        reasons: list[dict] = []
        if policy_eval is not None:
            for reason_elem in policy_eval.findall("reason"):
                reasons.append({
                    "type": _text(reason_elem, "type") or "",
                    "comment": _text(reason_elem, "comment") or "",
                })

        identifiers = record.find("identifiers")

        dkim_auth: list[dict] = []
        spf_auth: list[dict] = []
        auth_results = record.find("auth_results")
        if auth_results is not None:
            for dkim_elem in auth_results.findall("dkim"):
                dkim_auth.append({
                    "domain": _text(dkim_elem, "domain"),
                    "selector": _text(dkim_elem, "selector"),
                    "result": _text(dkim_elem, "result"),
                })
            for spf_elem in auth_results.findall("spf"):
                spf_auth.append({
                    "domain": _text(spf_elem, "domain"),
                    "scope": _text(spf_elem, "scope"),
                    "result": _text(spf_elem, "result"),
                })

        records.append({
            "source_ip": _text(row, "source_ip") or "",
            "count": count,
            "disposition": _choice(_text(policy_eval, "disposition"), DISPOSITIONS, "none"),
            "dkim": _choice(_text(policy_eval, "dkim"), ALIGN_RESULTS, "fail"),
            "spf": _choice(_text(policy_eval, "spf"), ALIGN_RESULTS, "fail"),
            "reasons": reasons,
            "header_from": _text(identifiers, "header_from") or "",
            "envelope_from": _text(identifiers, "envelope_from") or "",
            "envelope_to": _text(identifiers, "envelope_to") or "",
            "dkim_auth": dkim_auth,
            "spf_auth": spf_auth,
        })

    return {
        "report_id": report_id,
        "org_name": org_name,
        "email": email,
        "policy_domain": policy_domain,
        "begin_date": begin_date,
        "end_date": end_date,
        "policy_published": policy_published,
        "records": records,
    }


def _text(element: ET.Element | None, tag: str) -> str | None:
    """Return stripped text of a child element, or None."""
    if element is None:
        return None
    child = element.find(tag)
    if child is None or child.text is None:
        return None
    return child.text.strip()


def _choice(value: str | None, allowed: tuple[str, ...], default: str) -> str:
    """Return *value* lowercased when it is one of *allowed*.

    A missing value gives *default*; any other value gives ``unknown``
    for alignment results and *default* for dispositions.
    """
    if not value:
        return default
    value = value.lower()
    if value in allowed:
        return value
    return "unknown" if "unknown" in allowed else default
