# -*- coding: utf-8 -*-

"""
XML payloads of the bulk job/batch API.

Encoders return UTF-8 bytes ready to be posted; decoders take raw response
bodies and return model objects.
"""

import datetime
import logging
import xml.etree.ElementTree as ET
from collections.abc import Mapping
from typing import List, Optional, Tuple

from ..batching.models import (
    Batch,
    BatchState,
    Job,
    JobState,
    OperationType,
    RecordResult,
)
from ..utils.errors import RemoteRejectedError

NAMESPACE = "http://www.force.com/2009/06/asyncapi/dataload"
XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"

ET.register_namespace("", NAMESPACE)
ET.register_namespace("xsi", XSI_NAMESPACE)


def _tag(name):
    return f"{{{NAMESPACE}}}{name}"


def _text(element, name, default=None):
    child = element.find(_tag(name))
    if child is None or child.text is None:
        return default
    return child.text.strip()


def _int(element, name):
    value = _text(element, name)
    return int(float(value)) if value else 0


def _bool(element, name):
    return (_text(element, name) or "").lower() == "true"


def _parse(content: bytes, expected_root: str):
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise RemoteRejectedError(f"Malformed XML response: {e}") from e
    if root.tag == _tag("error"):
        code, message = _error_fields(root)
        raise RemoteRejectedError(message, exception_code=code)
    if root.tag != _tag(expected_root):
        raise RemoteRejectedError(
            f"Unexpected response element {root.tag!r}, expected {expected_root!r}"
        )
    return root


def _to_bytes(root) -> bytes:
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


#=============================================================================
# Encoders
#=============================================================================

def encode_job_request(
        object_type: str,
        operation: OperationType,
        external_id_field: Optional[str] = None,
        content_type: str = "XML"
    ) -> bytes:
    """Encode the jobInfo document that creates a job."""
    root = ET.Element(_tag("jobInfo"))
    ET.SubElement(root, _tag("operation")).text = OperationType(operation).value
    ET.SubElement(root, _tag("object")).text = object_type
    if external_id_field:
        ET.SubElement(root, _tag("externalIdFieldName")).text = external_id_field
    ET.SubElement(root, _tag("contentType")).text = content_type
    return _to_bytes(root)


def encode_job_state(state: JobState) -> bytes:
    """Encode the jobInfo document that moves a job to Closed or Aborted."""
    root = ET.Element(_tag("jobInfo"))
    ET.SubElement(root, _tag("state")).text = JobState(state).value
    return _to_bytes(root)


def _format_value(value):
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime.datetime):
        return value.isoformat()
    if isinstance(value, datetime.date):
        return value.isoformat()
    return str(value)


def _append_field(parent, name, value):
    element = ET.SubElement(parent, _tag(name))
    if value is None:
        element.set(f"{{{XSI_NAMESPACE}}}nil", "true")
    elif isinstance(value, Mapping):
        # Relationship reference, e.g. {"Account": {"External_Id__c": "A1"}}
        for sub_name, sub_value in value.items():
            _append_field(element, sub_name, sub_value)
    else:
        element.text = _format_value(value)


def encode_records(field_maps) -> bytes:
    """Encode a list of field maps as an sObjects document, preserving order."""
    root = ET.Element(_tag("sObjects"))
    for fields in field_maps:
        sobject = ET.SubElement(root, _tag("sObject"))
        for name, value in fields.items():
            _append_field(sobject, name, value)
    return _to_bytes(root)


#=============================================================================
# Decoders
#=============================================================================

def _error_fields(root) -> Tuple[Optional[str], str]:
    code = _text(root, "exceptionCode")
    message = _text(root, "exceptionMessage") or "Unknown remote error"
    return code, message


def decode_error(content: bytes) -> Tuple[Optional[str], str]:
    """
    Decode an error envelope.

    Returns:
        tuple: (exception_code, exception_message). If the body is not a
            recognizable error document, exception_code is None and the
            message is the raw body text.
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError:
        text = content.decode("utf-8", errors="replace").strip()
        return None, text or "Empty error response"
    if root.tag != _tag("error"):
        return None, content.decode("utf-8", errors="replace").strip()
    return _error_fields(root)


def decode_job_info(content: bytes) -> Job:
    root = _parse(content, "jobInfo")
    return Job(
        id=_text(root, "id"),
        object_type=_text(root, "object"),
        operation=OperationType(_text(root, "operation")),
        state=JobState(_text(root, "state")),
        external_id_field=_text(root, "externalIdFieldName"),
        content_type=_text(root, "contentType", "XML"),
        api_version=_text(root, "apiVersion"),
    )


def decode_batch_info(content: bytes, record_count: Optional[int] = None) -> Batch:
    """
    Decode a batchInfo document.

    Args:
        content (bytes): Response body.
        record_count (int): Records submitted in the batch. The remote side
            does not echo it, so the caller passes the value it knows.
    """
    root = _parse(content, "batchInfo")
    processed = _int(root, "numberRecordsProcessed")
    return Batch(
        id=_text(root, "id"),
        job_id=_text(root, "jobId"),
        state=BatchState(_text(root, "state")),
        record_count=processed if record_count is None else record_count,
        state_message=_text(root, "stateMessage"),
        records_processed=processed,
        records_failed=_int(root, "numberRecordsFailed"),
    )


def decode_batch_results(content: bytes) -> List[RecordResult]:
    """Decode a results document into RecordResults, in document order."""
    root = _parse(content, "results")
    results = []
    for element in root.findall(_tag("result")):
        success = _bool(element, "success")
        message = status_code = None
        fields = ()
        errors = element.findall(_tag("errors"))
        if errors:
            status_code = _text(errors[0], "statusCode")
            message = "; ".join(
                _text(e, "message") or _text(e, "statusCode") or "Unknown error"
                for e in errors
            )
            fields = tuple(
                f.text.strip()
                for e in errors for f in e.findall(_tag("fields"))
                if f.text
            )
        if success:
            if message:
                logging.debug(f"Ignoring error detail on successful record: {message}")
            message = None
        elif not message:
            message = status_code or "Unknown error"
        results.append(RecordResult(
            id=_text(element, "id") or None,
            success=success,
            created=_bool(element, "created"),
            error_message=message,
            status_code=status_code,
            fields=fields,
        ))
    return results
