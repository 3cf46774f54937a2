"""Tests for search requests, cursors and paging"""

import pytest


def ranked(mid, score, timestamp="2024-01-01T12:00:00Z"):
    from recall.retriever.searcher import RankedMessage
    return RankedMessage(message_id=mid, content=mid, raw_score=score, final_score=score, timestamp=timestamp)


RESULTS = [ranked(f"m{i}", 1.0 - i * 0.1) for i in range(5)]


class TestSearchRequest:
    def test_minimal(self):
        from recall.retriever.pagination import validate_request
        request = validate_request({"query": "deploy"})
        assert request.top_k is None
        assert request.cursor is None

    @pytest.mark.parametrize("payload", [
        {"query": ""},
        {"query": "   "},
        {"query": "q", "top_k": 0},
        {"query": "q", "min_score": 1.5},
        {},
    ])
    def test_invalid(self, payload):
        from recall.common.errors import ValidationError
        from recall.retriever.pagination import validate_request
        with pytest.raises(ValidationError):
            validate_request(payload)


class TestCursor:
    def test_encode_decode(self):
        from recall.retriever.pagination import decode_cursor, encode_cursor

        cursor = decode_cursor(encode_cursor(RESULTS[1]))

        assert cursor.id == "m1"
        assert cursor.score == pytest.approx(0.9)
        assert cursor.timestamp == "2024-01-01T12:00:00Z"

    def test_cursor_is_url_safe(self):
        from recall.retriever.pagination import encode_cursor
        token = encode_cursor(ranked("a/b+c?", 0.5))
        assert "+" not in token and "/" not in token

    @pytest.mark.parametrize("bad", ["not-base64!!", "bm90IGpzb24=", "e30="])
    def test_bad_cursor(self, bad):
        from recall.common.errors import ValidationError
        from recall.retriever.pagination import decode_cursor
        with pytest.raises(ValidationError):
            decode_cursor(bad)


class TestPaginate:
    def test_first_page(self):
        from recall.retriever.pagination import paginate

        page = paginate(RESULTS, page_size=2)

        assert [m.message_id for m in page.items] == ["m0", "m1"]
        assert page.has_next_page

    def test_walk_all_pages(self):
        from recall.retriever.pagination import paginate

        seen = []
        cursor = None
        while True:
            page = paginate(RESULTS, page_size=2, cursor=cursor)
            seen.extend(m.message_id for m in page.items)
            if not page.has_next_page:
                break
            cursor = page.next_cursor

        assert seen == ["m0", "m1", "m2", "m3", "m4"]

    def test_last_page_has_no_cursor(self):
        from recall.retriever.pagination import paginate
        page = paginate(RESULTS, page_size=5)
        assert page.next_cursor is None
        assert not page.has_next_page

    def test_resumes_by_position_when_item_gone(self):
        from recall.retriever.pagination import encode_cursor, paginate

        cursor = encode_cursor(ranked("vanished", 0.75))
        page = paginate(RESULTS, page_size=2, cursor=cursor)

        assert [m.message_id for m in page.items] == ["m3", "m4"]

    def test_position_tie_broken_by_time(self):
        from recall.retriever.pagination import encode_cursor, paginate

        results = [
            ranked("new", 0.5, "2024-01-01T12:00:00Z"),
            ranked("old", 0.5, "2024-01-01T10:00:00Z"),
        ]
        cursor = encode_cursor(ranked("gone", 0.5, "2024-01-01T11:00:00Z"))

        page = paginate(results, page_size=5, cursor=cursor)

        assert [m.message_id for m in page.items] == ["old"]

    def test_page_size_must_be_positive(self):
        from recall.common.errors import ValidationError
        from recall.retriever.pagination import paginate
        with pytest.raises(ValidationError):
            paginate(RESULTS, page_size=0)
