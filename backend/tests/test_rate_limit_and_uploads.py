import io
import pytest
from PIL import Image
from toyshare.utils import rate_limit
from toyshare.utils.rate_limit import InMemoryRateLimiter
from toyshare.utils.uploads import UnsupportedUpload, save_image, sniff_image, validate_upload_filename


def _png_bytes():
    buf = io.BytesIO()
    Image.new("RGB", (4, 4), (200, 30, 30)).save(buf, format="PNG")
    return buf.getvalue()


def test_rate_limiter_blocks_after_limit_and_resets():
    limiter = InMemoryRateLimiter()
    assert limiter.allow("k", 2, 60) == (True, 0)
    assert limiter.allow("k", 2, 60) == (True, 0)
    allowed, retry_after = limiter.allow("k", 2, 60)
    assert not allowed
    assert retry_after >= 1
    # other keys are independent
    assert limiter.allow("other", 2, 60)[0]
    limiter.reset("k")
    assert limiter.allow("k", 2, 60)[0]


def test_sniff_image_accepts_png():
    assert sniff_image(_png_bytes()) == ".png"


def test_sniff_image_rejects_text():
    with pytest.raises(UnsupportedUpload):
        sniff_image(b"definitely not an image")


def test_save_image_writes_file(tmp_path):
    url = save_image(_png_bytes(), tmp_path / "uploads")
    assert url.startswith("/uploads/profile-")
    assert url.endswith(".png")
    assert (tmp_path / "uploads" / url.rsplit("/", 1)[1]).exists()


@pytest.mark.parametrize("name", ["", "../evil.png", "dir\\x.png", "a" * 201])
def test_validate_upload_filename_rejects(name):
    with pytest.raises(ValueError):
        validate_upload_filename(name)


def test_rate_limiter_forgets_idle_keys(monkeypatch):
    clock = [1000.0]
    monkeypatch.setattr(rate_limit.time, "monotonic", lambda: clock[0])
    limiter = InMemoryRateLimiter()
    limiter.allow("a", 5, 60)
    limiter.allow("b", 5, 60)
    assert set(limiter._hits) == {"a", "b"}

    clock[0] += 61
    assert limiter.allow("c", 5, 60) == (True, 0)
    assert set(limiter._hits) == {"c"}
