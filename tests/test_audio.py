import numpy as np
import sounddevice as sd

import flow_dictation.audio as audio
from flow_dictation.audio import AudioConfig, AudioStream, has_input_device


class FakeInputStream:
    instances = []

    def __init__(self, *, samplerate, channels, dtype, callback, blocksize):
        self.samplerate = samplerate
        self.channels = channels
        self.dtype = dtype
        self.callback = callback
        self.blocksize = blocksize
        self.started = False
        self.stopped = False
        self.closed = False
        FakeInputStream.instances.append(self)

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def close(self) -> None:
        self.closed = True


def test_drain_returns_samples_captured_since_last_call(monkeypatch) -> None:
    FakeInputStream.instances.clear()
    monkeypatch.setattr("flow_dictation.audio.sd.InputStream", FakeInputStream)

    stream = AudioStream(AudioConfig(sample_rate=16000))
    stream.start()
    device = FakeInputStream.instances[0]

    assert device.started is True
    assert device.samplerate == 16000
    assert stream.is_open is True

    device.callback(np.array([[1], [2]], dtype=np.int16), 2, None, None)
    device.callback(np.array([[3]], dtype=np.int16), 1, None, None)

    assert np.array_equal(stream.drain(), np.array([1, 2, 3], dtype=np.int16))
    assert stream.drain().shape == (0,)


def test_stop_closes_device_and_returns_leftover_samples(monkeypatch) -> None:
    FakeInputStream.instances.clear()
    monkeypatch.setattr("flow_dictation.audio.sd.InputStream", FakeInputStream)

    stream = AudioStream()
    stream.start()
    device = FakeInputStream.instances[0]
    device.callback(np.array([[7], [-7]], dtype=np.int16), 2, None, None)

    remaining = stream.stop()

    assert stream.is_open is False
    assert device.stopped is True
    assert device.closed is True
    assert np.array_equal(remaining, np.array([7, -7], dtype=np.int16))


def test_start_is_idempotent(monkeypatch) -> None:
    FakeInputStream.instances.clear()
    monkeypatch.setattr("flow_dictation.audio.sd.InputStream", FakeInputStream)

    stream = AudioStream()
    stream.start()
    stream.start()

    assert len(FakeInputStream.instances) == 1


def test_stop_without_start_returns_empty() -> None:
    remaining = AudioStream().stop()

    assert remaining.shape == (0,)


def test_is_voiced_compares_against_threshold() -> None:
    stream = AudioStream(AudioConfig(silence_threshold=100))

    assert stream.is_voiced(np.array([0, 50, -100], dtype=np.int16)) is False
    assert stream.is_voiced(np.array([0, -101], dtype=np.int16)) is True
    assert stream.is_voiced(np.array([], dtype=np.int16)) is False


def test_to_float32_normalizes_int16() -> None:
    out = AudioStream.to_float32(np.array([16384, -32768], dtype=np.int16))

    assert out.dtype == np.float32
    assert np.allclose(out, np.array([0.5, -1.0], dtype=np.float32))
    assert AudioStream.to_float32(np.array([], dtype=np.int16)).dtype == np.float32


def test_live_level_updates_from_audio_callback(monkeypatch) -> None:
    FakeInputStream.instances.clear()
    monkeypatch.setattr("flow_dictation.audio.sd.InputStream", FakeInputStream)

    stream = AudioStream(AudioConfig(sample_rate=16000, silence_threshold=10))
    stream.start()
    device = FakeInputStream.instances[0]

    quiet = np.array([[500], [500], [500], [500]], dtype=np.int16)
    loud = np.array([[12000], [12000], [12000], [12000]], dtype=np.int16)
    device.callback(quiet, 4, None, None)
    quiet_level = stream.get_live_level()
    device.callback(loud, 4, None, None)
    loud_level = stream.get_live_level()

    assert 0.0 <= quiet_level <= 1.0
    assert 0.0 <= loud_level <= 1.0
    assert loud_level > quiet_level

    stream.stop()
    assert stream.get_live_level() == 0.0


def test_has_input_device_handles_missing_device(monkeypatch) -> None:
    def no_device(kind=None):  # type: ignore[no-untyped-def]
        raise sd.PortAudioError("Error querying device -1")

    monkeypatch.setattr(audio.sd, "query_devices", no_device)
    assert has_input_device() is False

    monkeypatch.setattr(audio.sd, "query_devices", lambda kind=None: {"name": "Built-in Microphone"})
    assert has_input_device() is True
