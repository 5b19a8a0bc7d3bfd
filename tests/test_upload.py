import pytest

from conftest import PNG_BYTES
from retinascan.errors import ValidationError
from retinascan.services.client.upload import UploadSlot, validate_upload


@pytest.mark.parametrize("filename", ["eye.png", "EYE.PNG", "fundus.jpg", "fundus.JPEG", "a.b.jpeg"])
def test_accepted_extensions(filename, settings):
    candidate = validate_upload(filename, PNG_BYTES, settings)
    assert candidate.filename == filename
    assert candidate.size_bytes == len(PNG_BYTES)


@pytest.mark.parametrize("filename", ["scan.gif", "scan.bmp", "scan", "", "png", "scan.png.exe"])
def test_rejected_extensions(filename, settings):
    with pytest.raises(ValidationError) as exc_info:
        validate_upload(filename, PNG_BYTES, settings)
    assert exc_info.value.message == "Invalid file type. Please upload PNG, JPG, or JPEG."


def test_size_limit_is_inclusive(settings):
    limit = 5 * 1024 * 1024
    assert validate_upload("eye.png", b"\x00" * limit, settings).size_bytes == limit
    with pytest.raises(ValidationError) as exc_info:
        validate_upload("eye.png", b"\x00" * (limit + 1), settings)
    assert exc_info.value.message == "File too large. Maximum allowed size is 5 MB."


def test_content_type_follows_extension(settings):
    assert validate_upload("a.png", PNG_BYTES, settings).content_type == "image/png"
    assert validate_upload("a.JPG", PNG_BYTES, settings).content_type == "image/jpeg"
    assert validate_upload("a.jpeg", PNG_BYTES, settings).content_type == "image/jpeg"


def test_selecting_new_file_releases_previous_preview(settings):
    slot = UploadSlot()
    first = slot.select(validate_upload("one.png", PNG_BYTES, settings))
    assert bytes(first.view[:4]) == PNG_BYTES[:4]

    second = slot.select(validate_upload("two.jpg", b"jpegdata", settings))
    assert first.released
    assert not second.released
    assert slot.preview is second
    assert slot.candidate.filename == "two.jpg"


def test_clear_releases_preview_and_is_repeatable(settings):
    slot = UploadSlot()
    preview = slot.select(validate_upload("one.png", PNG_BYTES, settings))
    slot.clear()
    slot.clear()

    assert preview.released
    assert slot.candidate is None
    assert slot.preview is None
    with pytest.raises(ValueError):
        preview.view


def test_release_is_idempotent(settings):
    slot = UploadSlot()
    preview = slot.select(validate_upload("one.png", PNG_BYTES, settings))
    preview.release()
    preview.release()
    slot.close()
    assert preview.released
