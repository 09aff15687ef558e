import base64
from pathlib import Path

import pytest

from tracker_api.images import ImageDecodeError, LocalImageStore, decode_image


def test_decode_image_accepts_data_url_and_picks_extension() -> None:
    encoded = base64.b64encode(b"jpeg-bytes").decode("ascii")

    image = decode_image(f"data:image/jpeg;base64,{encoded}")

    assert image.data == b"jpeg-bytes"
    assert image.extension == ".jpg"


def test_decode_image_defaults_bare_base64_to_png() -> None:
    image = decode_image(base64.b64encode(b"raw").decode("ascii"))

    assert image.extension == ".png"


def test_decode_image_rejects_unsupported_type() -> None:
    with pytest.raises(ImageDecodeError, match="unsupported image type"):
        decode_image("data:application/pdf;base64,AAAA")


def test_decode_image_rejects_empty_payload() -> None:
    with pytest.raises(ImageDecodeError, match="empty"):
        decode_image("")


def test_local_image_store_round_trip(tmp_path: Path) -> None:
    store = LocalImageStore(root_dir=tmp_path / "images", base_url="http://cdn/images/")

    url = store.upload("job.png", b"data")

    assert url == "http://cdn/images/job.png"
    assert (tmp_path / "images" / "job.png").read_bytes() == b"data"
    store.delete("job.png")
    store.delete("job.png")
    assert not (tmp_path / "images" / "job.png").exists()
