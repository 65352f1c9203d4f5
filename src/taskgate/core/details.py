"""Comment and attachment records: pure functions, no I/O.

Attachments are metadata only; moving file bytes is the caller's concern.
"""

from __future__ import annotations

import mimetypes

from taskgate.core.ids import generate_attachment_id, generate_comment_id


def validate_comment_body(body: str) -> str:
    """Validate and normalize a comment body.

    Strips whitespace and rejects empty/whitespace-only bodies.
    Returns the stripped body on success.
    Raises ``ValueError`` if the body is empty or whitespace-only.
    """
    if not isinstance(body, str) or not body.strip():
        raise ValueError("Comment body must be a non-empty string.")
    return body.strip()


def create_comment(
    author: str,
    text: str,
    *,
    created_at: str,
    comment_id: str | None = None,
) -> dict:
    """Build a comment record.  Raises ``ValueError`` on an empty body."""
    return {
        "id": comment_id if comment_id is not None else generate_comment_id(),
        "author": author,
        "text": validate_comment_body(text),
        "created_at": created_at,
    }


def create_attachment(
    filename: str,
    filesize: int,
    *,
    uploaded_by: str,
    uploaded_at: str,
    content_type: str | None = None,
    attachment_id: str | None = None,
) -> dict:
    """Build an attachment metadata record.

    *content_type* is guessed from the filename when not given.
    """
    if not isinstance(filename, str) or not filename.strip():
        raise ValueError("Attachment filename must be a non-empty string.")
    if filesize < 0:
        raise ValueError("Attachment size cannot be negative.")
    if content_type is None:
        content_type, _ = mimetypes.guess_type(filename)
    return {
        "id": attachment_id if attachment_id is not None else generate_attachment_id(),
        "filename": filename.strip(),
        "filesize": filesize,
        "content_type": content_type,
        "uploaded_at": uploaded_at,
        "uploaded_by": uploaded_by,
    }


def remove_record(records: list[dict] | None, record_id: str) -> list[dict]:
    """Return a copy of *records* without *record_id*.  Unknown ids are a no-op."""
    return [dict(r) for r in records or [] if r.get("id") != record_id]


def normalize_records(value: object, required: tuple[str, ...]) -> list[dict] | None:
    """Validate a proposed comment/attachment list.

    Every item must be a dict carrying each key in *required* plus a unique
    string ``id``.  Returns a shallow copy, or ``None`` if malformed.
    """
    if not isinstance(value, list):
        return None
    seen: set[str] = set()
    result: list[dict] = []
    for item in value:
        if not isinstance(item, dict):
            return None
        rid = item.get("id")
        if not isinstance(rid, str) or not rid or rid in seen:
            return None
        if any(key not in item for key in required):
            return None
        seen.add(rid)
        result.append(dict(item))
    return result


COMMENT_KEYS: tuple[str, ...] = ("author", "text")
ATTACHMENT_KEYS: tuple[str, ...] = ("filename",)
