"""Audio reactivity: from microphone frequency magnitudes to a visual intensity."""

import logging
from typing import Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

MAX_MAGNITUDE = 255
DFLT_FFT_SIZE = 256  # so 128 frequency bins
DFLT_SAMPLE_RATE = 44100
DFLT_TIME_SMOOTHING = 0.8
DFLT_MIN_DECIBELS = -100.0
DFLT_MAX_DECIBELS = -30.0
DFLT_SCALE_RANGE = (1.0, 1.8)

# -------------------------------------------------------------------------------
# Range mapping
# -------------------------------------------------------------------------------


def identity(x):
    """Identity function."""
    return x


class RangeMapper:
    """
    A callable class that maps values from one range to another.
    Precomputes scaling factors for better performance.

    >>> mapper = RangeMapper((0, 1), (100, 200))
    >>> mapper(0.5)
    150.0
    >>> mapper(-0.1)  # Below range
    100
    >>> mapper(1.5)   # Above range
    200
    """

    def __init__(
        self,
        value_range: Tuple[float, float],
        target_range: Tuple[float, float],
        *,
        ingress=identity,
        egress=identity,
    ):
        """
        Initialize the range mapper with source and target ranges.

        Args:
            value_range: The range of the input value (min, max)
            target_range: The range to map to (min, max)
        """
        self.value_min, self.value_max = value_range
        self.target_min, self.target_max = target_range

        # Precompute frequently used values for performance
        self._value_span = self.value_max - self.value_min
        self._target_span = self.target_max - self.target_min
        self._scale_factor = self._target_span / self._value_span
        self.ingress = ingress
        self.egress = egress

    def __call__(self, value: float) -> float:
        """
        Map a value from the source range to the target range.

        Args:
            value: The value to map

        Returns:
            Mapped value in the target range
        """
        value = self.ingress(value)
        if value <= self.value_min:
            output = self.target_min
        elif value >= self.value_max:
            output = self.target_max
        else:
            output = self.target_min + (value - self.value_min) * self._scale_factor

        return self.egress(output)


intensity_to_scale = RangeMapper((0.0, 1.0), DFLT_SCALE_RANGE, egress=float)


# -------------------------------------------------------------------------------
# Volume
# -------------------------------------------------------------------------------


def average_volume(magnitudes) -> float:
    """
    The mean of the frequency magnitudes (0 to 255), 0 if there are none.

    >>> average_volume([0, 255, 255, 0])
    127.5
    >>> average_volume([])
    0.0
    """
    magnitudes = np.asarray(magnitudes, dtype=float)
    if magnitudes.size == 0:
        return 0.0
    return float(magnitudes.mean())


def volume_intensity(volume: float) -> float:
    """
    Normalize a volume to [0, 1].

    >>> volume_intensity(255)
    1.0
    """
    return volume / MAX_MAGNITUDE


class AudioReactor:
    """
    Keeps track of the loudness of the latest audio snapshot.

    The reactor does nothing until ``activate`` is called (the user opted in and the
    microphone opened). Once active it stays active for the life of the object.

    >>> reactor = AudioReactor()
    >>> reactor.on_audio_sampled([255] * 128)  # ignored: not active yet
    0.0
    >>> reactor.activate()
    >>> reactor.on_audio_sampled([255] * 128)
    1.0
    >>> reactor.target_scale
    1.8
    """

    def __init__(self, scale_mapper=intensity_to_scale):
        self.is_active = False
        self.volume = 0.0
        self.intensity = 0.0
        self.scale_mapper = scale_mapper

    def activate(self):
        if not self.is_active:
            logger.info("Audio reactivity activated")
        self.is_active = True

    def on_audio_sampled(self, magnitudes) -> float:
        """Take in a frequency-magnitude snapshot and return the resulting intensity."""
        if not self.is_active:
            return 0.0
        self.volume = average_volume(magnitudes)
        self.intensity = volume_intensity(self.volume)
        return self.intensity

    @property
    def target_scale(self) -> float:
        """The uniform scale the cloud should pulse toward: 1 + 0.8 * intensity."""
        return self.scale_mapper(self.intensity)


# -------------------------------------------------------------------------------
# Microphone sampling
# -------------------------------------------------------------------------------


class AudioUnavailableError(RuntimeError):
    """Raised when the microphone can't be opened (missing library, no device, denied)."""


def byte_frequency_data(
    samples,
    previous: Optional[np.ndarray] = None,
    *,
    time_smoothing: float = DFLT_TIME_SMOOTHING,
    min_decibels: float = DFLT_MIN_DECIBELS,
    max_decibels: float = DFLT_MAX_DECIBELS,
):
    """
    Frequency magnitudes of a block of samples, as bytes (0 to 255).

    Follows what a browser's analyser node does: Blackman window, FFT, magnitudes
    normalized by the block size, exponential smoothing with the ``previous``
    (linear) magnitudes, conversion to decibels and a linear map of
    ``[min_decibels, max_decibels]`` onto ``[0, 255]``.

    Args:
        samples: A block of ``fft_size`` float samples in [-1, 1]
        previous: The smoothed linear magnitudes returned by the previous call

    Returns:
        tuple: (bytes array of ``fft_size // 2`` bins, smoothed linear magnitudes)

    >>> data, smoothed = byte_frequency_data(np.zeros(256))
    >>> data.shape, int(data.max())
    ((128,), 0)
    """
    samples = np.asarray(samples, dtype=float)
    fft_size = len(samples)
    windowed = samples * np.blackman(fft_size)
    magnitudes = np.abs(np.fft.rfft(windowed))[: fft_size // 2] / fft_size
    if previous is not None:
        magnitudes = time_smoothing * previous + (1 - time_smoothing) * magnitudes
    with np.errstate(divide='ignore'):
        decibels = 20 * np.log10(magnitudes)
    scaled = (decibels - min_decibels) * (MAX_MAGNITUDE / (max_decibels - min_decibels))
    data = np.clip(np.nan_to_num(scaled, neginf=0.0), 0, MAX_MAGNITUDE).astype(np.uint8)
    return data, magnitudes


class MicrophoneSampler:
    """
    Pull-based microphone reader producing byte frequency data.

    ``open`` must be called (typically through ``AnimationEngine.enable_audio``)
    before ``read``. ``pyaudio`` is only imported when opening, so the rest of the
    package works without it.
    """

    def __init__(
        self,
        fft_size: int = DFLT_FFT_SIZE,
        sample_rate: int = DFLT_SAMPLE_RATE,
        *,
        time_smoothing: float = DFLT_TIME_SMOOTHING,
    ):
        self.fft_size = fft_size
        self.sample_rate = sample_rate
        self.time_smoothing = time_smoothing
        self._pa = None
        self._stream = None
        self._smoothed = None

    @property
    def is_open(self):
        return self._stream is not None

    def open(self):
        if self.is_open:
            return self
        try:
            import pyaudio

            self._pa = pyaudio.PyAudio()
            self._stream = self._pa.open(
                format=pyaudio.paFloat32,
                channels=1,
                rate=self.sample_rate,
                input=True,
                frames_per_buffer=self.fft_size,
            )
        except ImportError as e:
            raise AudioUnavailableError(f"pyaudio is not installed: {e}") from e
        except OSError as e:
            self.close()
            raise AudioUnavailableError(f"Could not open the microphone: {e}") from e
        logger.info(
            "Microphone opened (%d Hz, %d-sample blocks)", self.sample_rate, self.fft_size
        )
        return self

    def read(self) -> np.ndarray:
        """
        Drain the samples buffered since the last call and return the byte frequency
        data of the most recent ``fft_size`` of them.

        Raises:
            AudioUnavailableError: If the microphone is not open or the stream fails
        """
        if not self.is_open:
            raise AudioUnavailableError("The microphone is not open")
        try:
            n_frames = max(self.fft_size, self._stream.get_read_available())
            data = self._stream.read(n_frames, exception_on_overflow=False)
        except OSError as e:
            raise AudioUnavailableError(f"Could not read the microphone: {e}") from e
        samples = np.frombuffer(data, dtype=np.float32)[-self.fft_size :]
        if len(samples) < self.fft_size:
            samples = np.pad(samples, (0, self.fft_size - len(samples)), mode='constant')
        out, self._smoothed = byte_frequency_data(
            samples, self._smoothed, time_smoothing=self.time_smoothing
        )
        return out

    def close(self):
        if self._stream is not None:
            self._stream.stop_stream()
            self._stream.close()
            self._stream = None
        if self._pa is not None:
            self._pa.terminate()
            self._pa = None

    def __enter__(self):
        return self.open()

    def __exit__(self, *exc):
        self.close()
