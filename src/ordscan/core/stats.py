"""Chi-square tail probabilities shared by the HWE, score and LRT paths."""

import jax.numpy as jnp
import numpy as np
from jax.scipy.stats import chi2


def chi2_sf(stat, df) -> np.ndarray | float:
    """Right-tail chi-square probability P(X > stat) for X ~ chi2(df).

    Args:
        stat: Statistic value(s). Negative values (round-off in deviance
            differences) are clamped to 0.
        df: Degrees of freedom, scalar or broadcastable to ``stat``.

    Returns:
        Python float for scalar input, otherwise a float64 array.
    """
    stat_arr = np.maximum(np.asarray(stat, dtype=np.float64), 0.0)
    df_arr = jnp.asarray(df, dtype=jnp.float64)
    p = np.asarray(chi2.sf(jnp.asarray(stat_arr), df=df_arr))
    if p.ndim == 0:
        return float(p)
    return p.astype(np.float64)
