"""Tests for synthetic payload generation and the /speed and /upload routes."""

import pytest

from lib.errors import InvalidSize, PayloadTooLarge
from lib.payload import (
    DEFAULT_SIZE,
    MAX_RANDOM_CHUNK,
    MAX_SIZE,
    OsRandomSource,
    describe,
    fill_random,
    generate_payload,
    parse_size,
)
from tests.conftest import CountingRandomSource


class TestParseSize:
    def test_default(self):
        assert parse_size(None) == DEFAULT_SIZE == 1048576
        assert parse_size("") == DEFAULT_SIZE

    @pytest.mark.parametrize("raw,expected", [("1", 1), ("100", 100), (str(MAX_SIZE), MAX_SIZE), (" 42 ", 42)])
    def test_valid(self, raw, expected):
        assert parse_size(raw) == expected

    @pytest.mark.parametrize("raw", ["0", "-1", "abc", "12abc", "1.5", "1_000", "0x10"])
    def test_invalid(self, raw):
        with pytest.raises(InvalidSize):
            parse_size(raw)

    def test_too_large(self):
        with pytest.raises(PayloadTooLarge) as exc:
            parse_size(str(MAX_SIZE + 1))
        assert str(MAX_SIZE) in exc.value.message

    def test_huge_digit_string_is_too_large(self):
        with pytest.raises(PayloadTooLarge):
            parse_size("9" * 5000)

    def test_huge_negative_is_invalid(self):
        with pytest.raises(InvalidSize):
            parse_size("-" + "9" * 5000)

    def test_leading_zeros(self):
        assert parse_size("0" * 20 + "42") == 42


class TestGeneratePayload:
    def test_zero(self):
        assert generate_payload(5, "zero") == b"\x00" * 5

    def test_asterisk(self):
        assert generate_payload(4, "asterisk") == b"****"

    def test_random_chunks_within_quota(self):
        source = CountingRandomSource()
        size = MAX_RANDOM_CHUNK * 3 + 17
        payload = generate_payload(size, "rand", source)
        assert len(payload) == size
        assert source.calls == [MAX_RANDOM_CHUNK] * 3 + [17]

    def test_default_random_source(self):
        payload = generate_payload(MAX_RANDOM_CHUNK + 1, "rand")
        assert len(payload) == MAX_RANDOM_CHUNK + 1


class TestRandomSource:
    def test_refuses_oversized_fill(self):
        with pytest.raises(ValueError):
            OsRandomSource().fill(memoryview(bytearray(MAX_RANDOM_CHUNK + 1)))

    def test_fill_random_with_oversized_chunk_fails_loudly(self):
        with pytest.raises(ValueError):
            fill_random(bytearray(MAX_RANDOM_CHUNK * 2), OsRandomSource(), chunk=MAX_RANDOM_CHUNK * 2)

    def test_fill_uses_source(self):
        source = OsRandomSource(urandom=lambda n: b"\xab" * n)
        buf = bytearray(10)
        fill_random(buf, source, chunk=4)
        assert buf == bytearray(b"\xab" * 10)


class TestDescribe:
    def test_rounding(self):
        assert describe(1536, "zero") == {"bytes": 1536, "kibibytes": 1.5, "mebibytes": 0.0, "pattern": "zero"}
        assert describe(MAX_SIZE, "rand")["mebibytes"] == 100.0


class TestSpeedRoute:
    @pytest.mark.parametrize("size", [1, 17, 65536, 65537, 300000])
    def test_exact_size(self, client, auth, size):
        resp = client.get(f"/speed?size={size}&pattern=rand", headers=auth)
        assert resp.status_code == 200
        assert len(resp.content) == size
        assert resp.headers["content-length"] == str(size)
        assert resp.headers["content-type"] == "application/octet-stream"

    def test_default_size_and_pattern(self, client, auth):
        resp = client.get("/speed", headers=auth)
        assert len(resp.content) == DEFAULT_SIZE
        assert set(resp.content) == {ord("*")}

    def test_zero_pattern(self, client, auth):
        assert client.get("/speed?size=8&pattern=zero", headers=auth).content == b"\x00" * 8

    def test_uses_injected_random_source(self, client, auth, random_source):
        resp = client.get("/speed?size=100000&pattern=rand", headers=auth)
        assert set(resp.content) == {7}
        assert random_source.calls == [65536, 100000 - 65536]

    @pytest.mark.parametrize("size", ["0", "-5", "abc"])
    def test_bad_size_is_400(self, client, auth, size, random_source):
        resp = client.get(f"/speed?size={size}&pattern=rand", headers=auth)
        assert resp.status_code == 400
        assert "error" in resp.json()
        assert random_source.calls == []

    def test_oversize_is_413(self, client, auth, random_source):
        resp = client.get(f"/speed?size={MAX_SIZE + 1}&pattern=rand", headers=auth)
        assert resp.status_code == 413
        assert resp.json() == {"error": f"Size too large (max {MAX_SIZE} bytes)"}
        assert random_source.calls == []

    def test_many_digit_size_is_413(self, client, auth, random_source):
        resp = client.get("/speed", params={"size": "9" * 5000}, headers=auth)
        assert resp.status_code == 413
        assert resp.json() == {"error": "Size too large (max 104857600 bytes)"}
        assert random_source.calls == []

    def test_random_quota_breach_is_500(self, make_client, auth):
        class GreedySource:
            max_chunk = 1 << 30

            def fill(self, view):
                raise ValueError("Random fill of 99 bytes exceeds the quota")

        client = make_client(random_source=GreedySource())
        resp = client.get("/speed?size=10&pattern=rand", headers=auth)
        assert resp.status_code == 500
        assert resp.json() == {"error": "An internal error occurred"}

    def test_unknown_pattern_is_400(self, client, auth):
        resp = client.get("/speed?size=10&pattern=stripes", headers=auth)
        assert resp.status_code == 400
        assert "pattern" in resp.json()["error"]

    def test_meta_only(self, client, auth, random_source):
        resp = client.get(f"/speed?size={MAX_SIZE}&pattern=rand&meta", headers=auth)
        assert resp.status_code == 200
        assert resp.json() == {"bytes": MAX_SIZE, "kibibytes": 102400.0, "mebibytes": 100.0, "pattern": "rand"}
        assert random_source.calls == []

    def test_meta_still_validates_size(self, client, auth):
        assert client.get(f"/speed?size={MAX_SIZE + 1}&meta=1", headers=auth).status_code == 413

    def test_post_is_not_found(self, client, auth):
        assert client.post("/speed", headers=auth).status_code == 404


class TestUploadRoute:
    def test_reports_size(self, client, auth):
        resp = client.post("/upload", headers={**auth, "traceparent": "tp-9"}, content=b"x" * 12345)
        assert resp.status_code == 200
        data = resp.json()
        assert data["received"] == 12345
        assert data["traceparent"] == "tp-9"
        assert data["timestamp"].endswith("Z")
        assert resp.headers["x-bytes-received"] == "12345"

    def test_empty_body(self, client, auth):
        assert client.post("/upload", headers=auth).json()["received"] == 0

    def test_too_large_drains_and_rejects(self, client, auth, monkeypatch):
        import api.routes.payload as payload_routes

        monkeypatch.setattr(payload_routes, "MAX_SIZE", 1000)
        chunks = [b"a" * 400] * 5

        def body():
            yield from chunks

        resp = client.post("/upload", headers=auth, content=body())
        assert resp.status_code == 413
        assert resp.json() == {"error": "Upload too large (max 1000 bytes)"}
        # Connection stays usable after the oversized body
        assert client.post("/upload", headers=auth, content=b"ok").status_code == 200

    def test_get_is_not_found(self, client, auth):
        assert client.get("/upload", headers=auth).status_code == 404
