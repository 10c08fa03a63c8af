"""
Pipeline: thin orchestrator for a single capture.

capture      – DOM adapter → CaptureResult (session stored when ≥1 valid field)
capture_html – HTML text → CaptureResult

Steps:
  formharvest.extractors – FormExtractor (depth-first, shadow-aware)
  formharvest.mapping    – classify + validate, invalid fields dropped
  formharvest.store      – dedup check + insert in one transaction
"""

from __future__ import annotations

from typing import Any, Optional

from formharvest.extractors import FormExtractor, SoupDom
from formharvest.extractors.dom import DomAdapter
from formharvest.ir import CaptureResult
from formharvest.logger import get_logger
from formharvest.mapping import validate_observations
from formharvest.store import SessionStore

logger = get_logger(__name__)

MSG_NO_DATA = "No form data found on this page"
MSG_NO_VALID_DATA = "No valid form data found"


def capture(
    dom: DomAdapter,
    url: str,
    store: Optional[SessionStore] = None,
    root: Optional[Any] = None,
) -> CaptureResult:
    """
    Capture the form fields of one page.

    Extraction completes before validation starts; the session (if any) is
    stored only after its duplicate flag has been decided. Without a *store*
    the validated fields are returned but nothing is persisted.
    """
    extraction = FormExtractor(dom).safe_extract(root)
    if not extraction.success:
        if extraction.error:
            logger.warning("capture: extraction failed for %s: %s", url, extraction.error)
        else:
            logger.info("capture: no form data on %s", url)
        return CaptureResult(success=False, message=MSG_NO_DATA)

    logger.info("capture: %d raw field(s) on %s", len(extraction.fields), url)
    fields = validate_observations(extraction.fields)
    if not fields:
        return CaptureResult(success=False, message=MSG_NO_VALID_DATA)

    session = store.add_session(url, fields) if store is not None else None
    return CaptureResult(
        success=True,
        message=f"Found {len(fields)} form fields with valid data",
        fields=fields,
        session=session,
    )


def capture_html(
    html: str,
    url: str,
    store: Optional[SessionStore] = None,
    parser: Optional[str] = None,
) -> CaptureResult:
    """Parse *html* and run :func:`capture` on the whole document."""
    return capture(SoupDom.from_html(html, parser=parser), url, store=store)
