"""Validation gate: type first, then size (inclusive 10 MiB)."""

import pytest

from captionator.core.errors import ErrorKind
from captionator.core.settings import MAX_UPLOAD_BYTES
from captionator.upload.validation import ACCEPT_ATTRIBUTE, validate


class TestValidate:

    @pytest.mark.parametrize("mime", ["text/plain", "application/pdf", "video/mp4", "", None, "imagex/png"])
    def test_rejects_non_image_types(self, make_file, mime):
        verdict = validate(make_file(b"x", content_type=mime))
        assert not verdict.ok
        assert verdict.reason == ErrorKind.UNSUPPORTED_TYPE

    def test_type_checked_before_size(self, make_file):
        verdict = validate(make_file(b"x", content_type="text/plain", size=MAX_UPLOAD_BYTES * 5))
        assert verdict.reason == ErrorKind.UNSUPPORTED_TYPE

    @pytest.mark.parametrize("mime", ["image/jpeg", "image/png", "image/webp", "image/gif"])
    def test_accepts_small_images(self, make_file, mime):
        assert validate(make_file(b"\x89PNG", content_type=mime)).ok

    def test_exactly_ten_mib_is_accepted(self, make_file):
        assert MAX_UPLOAD_BYTES == 10 * 1024 * 1024
        assert validate(make_file(b"x", size=MAX_UPLOAD_BYTES)).ok

    def test_one_byte_over_is_too_large(self, make_file):
        verdict = validate(make_file(b"x", size=MAX_UPLOAD_BYTES + 1))
        assert not verdict.ok
        assert verdict.reason == ErrorKind.TOO_LARGE

    def test_custom_limit(self, make_file):
        assert not validate(make_file(b"12345"), max_bytes=4).ok
        assert validate(make_file(b"1234"), max_bytes=4).ok


def test_accept_attribute_lists_supported_types():
    assert ACCEPT_ATTRIBUTE == "image/jpeg,image/png,image/webp,image/gif"
