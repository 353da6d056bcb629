"""Link functions of the cumulative link model.

Each link is a latent-variable distribution F with P(Y <= j) = F(theta_j - eta).
The functions take the link name as a Python string so they can be used
inside JIT-compiled code with the link as a static argument.
"""

import jax
import jax.numpy as jnp
from jax.scipy.stats import norm

from ordscan.core.config import LINKS

# exp(exp(x)) overflows float64 shortly after x = 6.5; the CDF is flat there
_CLOGLOG_CLIP = 40.0


def link_cdf(link: str, x):
    """Latent distribution function F(x)."""
    if link == "logit":
        return jax.nn.sigmoid(x)
    if link == "probit":
        return norm.cdf(x)
    if link == "cloglog":
        x = jnp.clip(x, -_CLOGLOG_CLIP, _CLOGLOG_CLIP)
        return -jnp.expm1(-jnp.exp(x))
    if link == "cauchit":
        return 0.5 + jnp.arctan(x) / jnp.pi
    raise ValueError(f"unknown link {link!r}; expected one of {LINKS}")


def link_pdf(link: str, x):
    """Latent density f(x) = F'(x)."""
    if link == "logit":
        s = jax.nn.sigmoid(x)
        return s * (1.0 - s)
    if link == "probit":
        return norm.pdf(x)
    if link == "cloglog":
        x = jnp.clip(x, -_CLOGLOG_CLIP, _CLOGLOG_CLIP)
        return jnp.exp(x - jnp.exp(x))
    if link == "cauchit":
        return 1.0 / (jnp.pi * (1.0 + x * x))
    raise ValueError(f"unknown link {link!r}; expected one of {LINKS}")


def link_quantile(link: str, p):
    """Inverse distribution function F^-1(p), used for starting thresholds."""
    p = jnp.asarray(p)
    if link == "logit":
        return jnp.log(p) - jnp.log1p(-p)
    if link == "probit":
        return norm.ppf(p)
    if link == "cloglog":
        return jnp.log(-jnp.log1p(-p))
    if link == "cauchit":
        return jnp.tan(jnp.pi * (p - 0.5))
    raise ValueError(f"unknown link {link!r}; expected one of {LINKS}")
