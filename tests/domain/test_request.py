import pytest

from domain.errors import RequestBuildError
from domain.request import (
    DEFAULT_TIMEOUT_SEC,
    HttpRequest,
    MultipartForm,
    RequestBody,
    parse_headers,
)


class TestParseHeaders:
    def test_parses_a_blob_of_text_headers(self):
        text = """Accept-Encoding: gzip, deflate, br
                  Referer:https://github.com/rust-lang/rust
                  User-Agent: Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/116.0.0.0 Safari/537.36
                  X-Requested-With: XMLHttpRequest"""

        headers = parse_headers(text)

        assert len(headers) == 4
        assert headers["User-Agent"] == (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/116.0.0.0 Safari/537.36"
        )
        # split at the first colon only, no space after the colon
        assert headers["Referer"] == "https://github.com/rust-lang/rust"
        assert headers["Accept-Encoding"] == "gzip, deflate, br"

    def test_empty_input_gives_no_headers(self):
        assert parse_headers() == {}
        assert parse_headers("") == {}

    def test_lines_without_colon_are_skipped(self):
        assert parse_headers("this is not a real header and should not work") == {}

    def test_blank_lines_are_skipped_and_later_duplicates_win(self):
        headers = parse_headers("X-A: 1\n\nnot a header\nX-A: 2\nX-B:")
        assert headers == {"X-A": "2", "X-B": ""}


class TestHttpRequest:
    def test_defaults(self):
        req = HttpRequest("get", "https://example.com")

        assert req.method == "GET"
        assert req.url == "https://example.com"
        assert req.headers == {}
        assert req.timeout == DEFAULT_TIMEOUT_SEC == 30.0
        assert req.body is None
        assert req.multipart is None
        assert req.status_codes is None
        assert req.proxy is None
        assert req.user_agent is None
        assert req.is_compressed() is True
        assert req.is_skipped is False

    def test_builder_pattern_reports_exact_values(self):
        req = (
            HttpRequest("GET", "https://google.com")
            .with_headers(parse_headers("Accept-Encoding: gzip, deflate, br"))
            .with_timeout(710)
            .with_status_codes([200, 210, 222])
            .with_proxy("https://secure.example")
            .with_user_agent("stepwire")
            .no_compression()
            .build()
        )

        assert req.method == "GET"
        assert req.url == "https://google.com"
        assert req.headers == {"Accept-Encoding": "gzip, deflate, br"}
        assert req.timeout == 710
        assert req.status_codes == (200, 210, 222)
        assert req.proxy == "https://secure.example"
        assert req.user_agent == "stepwire"
        assert req.is_compressed() is False

    def test_with_methods_return_new_values(self):
        base = HttpRequest("GET", "https://example.com")
        changed = base.with_header("X-Token", "1").with_timeout(5)

        assert base.headers == {}
        assert base.timeout == 30.0
        assert changed.headers == {"X-Token": "1"}
        assert changed.timeout == 5

    def test_with_headers_accepts_a_text_blob(self):
        req = HttpRequest("GET", "https://example.com").with_headers("Accept: */*\nX-Api-Key: 1234")
        assert req.headers == {"Accept": "*/*", "X-Api-Key": "1234"}

    def test_descriptor_is_frozen(self):
        req = HttpRequest("GET", "https://example.com")
        with pytest.raises(Exception):  # FrozenInstanceError
            req.url = "https://other.example"

    def test_headers_are_copied_from_the_caller(self):
        headers = {"Accept": "*/*"}
        req = HttpRequest("GET", "https://example.com").with_headers(headers)
        headers["Accept"] = "text/html"
        assert req.headers == {"Accept": "*/*"}

    def test_headers_cannot_be_changed_in_place(self):
        req = HttpRequest("GET", "https://example.com").with_header("Accept", "*/*")
        with pytest.raises(TypeError):
            req.headers["X-Injected"] = "1"
        assert req.with_header("X-Added", "1").headers == {"Accept": "*/*", "X-Added": "1"}
        assert req.headers == {"Accept": "*/*"}

    def test_compressed_toggles_back_on(self):
        req = HttpRequest("GET", "https://example.com").no_compression().compressed()
        assert req.is_compressed() is True

    def test_skip_to(self):
        req = HttpRequest("GET", "https://google.com").with_skip_to("RobotsTxt").build()
        assert req.is_skipped is True
        assert req.skip_to == "RobotsTxt"

    def test_skip_helper(self):
        req = HttpRequest.skip("Login")
        assert req.is_skipped is True
        assert req.skip_to == "Login"

    def test_missing_timeout_falls_back_to_default(self):
        req = HttpRequest("GET", "https://example.com").with_timeout(None)
        assert req.timeout is None
        assert req.effective_timeout() == 30.0

    @pytest.mark.parametrize("seconds", [0, -1, 0.0])
    def test_non_positive_timeout_is_rejected(self, seconds):
        with pytest.raises(RequestBuildError, match="Timeout must be positive"):
            HttpRequest("GET", "https://example.com").with_timeout(seconds)
        with pytest.raises(RequestBuildError):
            HttpRequest("GET", "https://example.com", timeout=seconds)

    def test_body_from_raw_values(self):
        assert HttpRequest("POST", "/").with_body(b"\x02\x03").body == RequestBody.from_bytes(b"\x02\x03")
        text = HttpRequest("POST", "/").with_body("hi").body
        assert text.is_text is True
        assert text.data == "hi"

    def test_body_then_multipart_is_rejected(self):
        req = HttpRequest("POST", "https://example.com").with_body(RequestBody.from_text("a=1"))
        with pytest.raises(RequestBuildError, match="both a body and a multipart"):
            req.with_multipart(MultipartForm(texts=[("name", "value")]))

    def test_multipart_then_body_is_rejected(self):
        req = HttpRequest("POST", "https://example.com").with_multipart(MultipartForm(texts=[("a", "b")]))
        with pytest.raises(RequestBuildError):
            req.with_body(b"raw")

    def test_build_rejects_a_descriptor_carrying_both(self):
        req = HttpRequest(
            "POST",
            "https://example.com",
            body=RequestBody.from_text("x"),
            multipart=MultipartForm(texts=[("a", "b")]),
        )
        with pytest.raises(RequestBuildError):
            req.build()


class TestMultipartForm:
    def test_parts_keep_texts_before_files(self):
        form = MultipartForm(texts=[("name", "value")], files=[("blob", b"\x01\x02\x03")])

        assert len(form) == 2
        assert form.to_parts() == [
            ("name", (None, "value")),
            ("blob", (None, b"\x01\x02\x03")),
        ]

    def test_fields_are_stored_as_tuples(self):
        texts = [("name", "value")]
        form = MultipartForm(texts=texts)
        texts.append(("late", "x"))

        assert form.texts == (("name", "value"),)
        assert form.files == ()
        assert len(form) == 1
