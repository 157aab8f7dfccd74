"""Common test fixtures."""

from typing import List, Optional, Sequence, Union

import numpy as np
import pytest

from retext.buffer import PixelBuffer
from retext.errors import EngineUnavailable
from retext.ocr import TextRegion, TextRegionAdapter


class FakeEngine:
    """In-process stand-in for Tesseract.

    ``image_to_data`` reports the given regions as word-level rows;
    ``image_to_string`` returns the queued texts one per call (the last one
    repeats). With ``fail`` set both raise the given exception.
    """

    def __init__(
        self,
        regions: Sequence[TextRegion] = (),
        texts: Union[str, List[str]] = "",
        fail: Optional[Exception] = None,
        extra_rows: Sequence[dict] = ()
    ):
        self.regions = list(regions)
        self.texts = [texts] if isinstance(texts, str) else list(texts)
        self.fail = fail
        self.extra_rows = list(extra_rows)
        self.data_calls = 0
        self.string_calls = []

    def image_to_data(self, image):
        self.data_calls += 1
        if self.fail is not None:
            raise self.fail

        data = {key: [] for key in ("level", "text", "left", "top", "width", "height", "conf")}
        rows = [
            {
                "level": 5,
                "text": region.text,
                "left": region.x,
                "top": region.y,
                "width": region.width,
                "height": region.height,
                "conf": region.confidence * 100,
            }
            for region in self.regions
        ] + self.extra_rows
        for row in rows:
            for key in data:
                data[key].append(row[key])
        return data

    def image_to_string(self, image):
        self.string_calls.append(image.mode)
        if self.fail is not None:
            raise self.fail
        index = min(len(self.string_calls), len(self.texts)) - 1
        return self.texts[index]


@pytest.fixture
def make_adapter():
    """Build a TextRegionAdapter around a FakeEngine."""
    def _make(*regions: TextRegion, **kwargs) -> TextRegionAdapter:
        return TextRegionAdapter(engine=FakeEngine(regions, **kwargs))
    return _make


@pytest.fixture
def broken_adapter():
    """Adapter whose engine is not installed."""
    return TextRegionAdapter(engine=FakeEngine(fail=EngineUnavailable("tesseract is not installed")))


@pytest.fixture
def random_image():
    """A 24×32 RGB image of seeded random noise."""
    rng = np.random.default_rng(1234)
    return PixelBuffer(rng.integers(0, 256, size=(24, 32, 3), dtype=np.uint8))


@pytest.fixture
def white_image():
    """A 200×100 white RGB image."""
    return PixelBuffer.blank(200, 100)


@pytest.fixture
def sign_image():
    """A 100×60 white image with a black block where the word "Hello" sits."""
    data = np.full((60, 100, 3), 255, dtype=np.uint8)
    data[5:17, 5:45] = 0
    return PixelBuffer(data)


@pytest.fixture
def hello_region():
    return TextRegion(text="Hello", x=5, y=5, width=40, height=12, confidence=0.75)


@pytest.fixture
def fake_engine():
    """The FakeEngine class, for tests that build adapters by hand."""
    return FakeEngine
