"""Tests for comment and attachment records."""

from __future__ import annotations

import pytest

from taskgate.core.details import (
    ATTACHMENT_KEYS,
    COMMENT_KEYS,
    create_attachment,
    create_comment,
    normalize_records,
    remove_record,
    validate_comment_body,
)
from taskgate.core.ids import validate_id

_TS = "2026-03-01T09:00:00Z"


class TestComments:
    def test_body_is_stripped(self) -> None:
        assert validate_comment_body("  looks good  ") == "looks good"

    @pytest.mark.parametrize("body", ["", "   ", "\n"])
    def test_empty_body_rejected(self, body: str) -> None:
        with pytest.raises(ValueError):
            validate_comment_body(body)

    def test_create_comment(self) -> None:
        c = create_comment("employee:bob", " Done with the permit ", created_at=_TS)
        assert validate_id(c["id"], "cmt")
        assert c["text"] == "Done with the permit"
        assert c["author"] == "employee:bob"
        assert c["created_at"] == _TS


class TestAttachments:
    def test_content_type_guessed(self) -> None:
        a = create_attachment("call-sheet.pdf", 2048, uploaded_by="manager:alice", uploaded_at=_TS)
        assert validate_id(a["id"], "att")
        assert a["content_type"] == "application/pdf"
        assert a["filesize"] == 2048

    def test_explicit_content_type(self) -> None:
        a = create_attachment(
            "notes", 1, uploaded_by="m:a", uploaded_at=_TS, content_type="text/plain"
        )
        assert a["content_type"] == "text/plain"

    def test_unknown_extension(self) -> None:
        a = create_attachment("blob.zzqq", 1, uploaded_by="m:a", uploaded_at=_TS)
        assert a["content_type"] is None

    def test_blank_filename(self) -> None:
        with pytest.raises(ValueError):
            create_attachment(" ", 1, uploaded_by="m:a", uploaded_at=_TS)

    def test_negative_size(self) -> None:
        with pytest.raises(ValueError):
            create_attachment("a.txt", -1, uploaded_by="m:a", uploaded_at=_TS)


class TestRecords:
    def test_remove_record(self) -> None:
        records = [{"id": "a"}, {"id": "b"}]
        assert remove_record(records, "a") == [{"id": "b"}]
        assert remove_record(records, "zz") == records

    def test_normalize_comments(self) -> None:
        good = [{"id": "c1", "author": "x", "text": "hi"}]
        assert normalize_records(good, COMMENT_KEYS) == good

    def test_normalize_rejects_missing_keys(self) -> None:
        assert normalize_records([{"id": "a1"}], ATTACHMENT_KEYS) is None

    def test_normalize_rejects_duplicates(self) -> None:
        dup = [{"id": "a", "filename": "x"}, {"id": "a", "filename": "y"}]
        assert normalize_records(dup, ATTACHMENT_KEYS) is None

    def test_normalize_rejects_non_list(self) -> None:
        assert normalize_records({"id": "a"}, COMMENT_KEYS) is None
