"""
formharvest: harvest identity form fields from web pages, validate them,
keep them in a local session store and relay them to a remote collector.
"""

from formharvest.dedup import is_duplicate, key_fields
from formharvest.extractors import DomAdapter, FormExtractor, SoupDom
from formharvest.ir import (
    CaptureResult,
    FieldObservation,
    FieldType,
    FieldValidation,
    Role,
    Session,
    SyncOutcome,
    SyncPayload,
    ValidatedField,
)
from formharvest.mapping import classify, validate, validate_observations
from formharvest.pipeline import capture, capture_html
from formharvest.store import SessionStore, StoreError
from formharvest.sync import CollectorClient, SyncInProgressError, SyncPipeline, build_payload, sync

__version__ = "0.1.0"

__all__ = [
    "CaptureResult",
    "CollectorClient",
    "DomAdapter",
    "FieldObservation",
    "FieldType",
    "FieldValidation",
    "FormExtractor",
    "Role",
    "Session",
    "SessionStore",
    "SoupDom",
    "StoreError",
    "SyncInProgressError",
    "SyncOutcome",
    "SyncPayload",
    "SyncPipeline",
    "ValidatedField",
    "build_payload",
    "capture",
    "capture_html",
    "classify",
    "is_duplicate",
    "key_fields",
    "sync",
    "validate",
    "validate_observations",
]
