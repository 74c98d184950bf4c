"""
1/f (pink) noise for slow hand drift.

A phone held at arm's length does not wander like white noise: the aim drifts
slowly as the arm tires and the user breathes. A 1/f spectrum reproduces that
low-frequency wander, which is what makes a steady-looking hold fail the
stability SD test after a few seconds.

The generator shapes a random complex spectrum so that |X(f)| ∝ 1/sqrt(f),
i.e. PSD ∝ 1/f, and transforms back to the time domain.
"""

from typing import Optional

import numpy as np


def pink_noise_1f(
    n: int,
    fs: float,
    fmin: Optional[float] = None,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """
    Zero-mean, unit-std approximate 1/f noise.

    Args:
        n: Number of samples.
        fs: Sample rate in Hz.
        fmin: Frequency floor for the 1/sqrt(f) shaping. Defaults to fs/n,
            one cycle over the whole record.
        rng: Random generator. A fresh default_rng() if None.

    Returns:
        Array of shape (n,). All zeros when n < 2.

    Raises:
        ValueError: If fs <= 0.

    Example:
        >>> x = pink_noise_1f(500, 50.0, rng=np.random.default_rng(0))
        >>> x.shape
        (500,)
        >>> bool(abs(np.std(x) - 1.0) < 1e-9)
        True
    """
    if fs <= 0:
        raise ValueError(f"fs must be positive, got {fs}")
    if n < 2:
        return np.zeros(max(n, 0))
    if rng is None:
        rng = np.random.default_rng()

    freqs = np.fft.rfftfreq(n, d=1.0 / fs)
    if fmin is None:
        fmin = fs / n
    shaping = 1.0 / np.sqrt(np.maximum(freqs, fmin))

    spectrum = (rng.standard_normal(freqs.size) + 1j * rng.standard_normal(freqs.size)) * shaping
    spectrum[0] = 0.0
    # Nyquist bin of an even-length real signal has no imaginary part
    if n % 2 == 0:
        spectrum[-1] = spectrum[-1].real

    x = np.fft.irfft(spectrum, n=n)
    x -= np.mean(x)
    sd = np.std(x)
    if sd > 0:
        x /= sd
    return x
