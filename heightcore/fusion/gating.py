"""Innovation consistency checks for the scalar height filter.

For a scalar state observed directly (H = 1):

    y = z - x̂⁻              innovation
    S = P⁻ + R              innovation variance
    NIS = y² / S

Under the filter's own noise model NIS ~ χ²(1). A fusion whose NIS exceeds
the χ²(1, α) quantile means the new estimate disagrees with the running
height more than the stated uncertainties allow: typically the user moved
to a different object without resetting. The check is reported, not used
to reject the measurement.
"""

import numpy as np
from scipy import stats


def normalized_innovation_squared(innovation_m: float, innovation_var_m2: float) -> float:
    """
    NIS = y² / S for a scalar innovation.

    Raises:
        ValueError: If S is not positive.

    Example:
        >>> normalized_innovation_squared(2.0, 4.0)
        1.0
    """
    if not innovation_var_m2 > 0:
        raise ValueError(f"Innovation variance must be positive, got {innovation_var_m2}")
    return float(innovation_m ** 2 / innovation_var_m2)


def chi_square_threshold(dof: int = 1, confidence: float = 0.95) -> float:
    """
    χ²(dof, α) critical value.

    Example:
        >>> np.allclose(chi_square_threshold(1, 0.95), 3.841, atol=0.01)
        True
    """
    if dof < 1:
        raise ValueError(f"Degrees of freedom must be positive, got {dof}")
    if not (0 < confidence < 1):
        raise ValueError(f"Confidence level must be in (0, 1), got {confidence}")
    return float(stats.chi2.ppf(confidence, dof))


def is_consistent(innovation_m: float, innovation_var_m2: float, confidence: float = 0.95) -> bool:
    """True if NIS is below the χ²(1) threshold at the given confidence."""
    nis = normalized_innovation_squared(innovation_m, innovation_var_m2)
    return bool(nis < chi_square_threshold(1, confidence))
