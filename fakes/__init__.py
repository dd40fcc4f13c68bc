"""In-memory test doubles for the Wave Plus device."""

from fakes.fake_device import BOGUS_FRAME, FakeDevice, build_frame

__all__ = ["FakeDevice", "build_frame", "BOGUS_FRAME"]
