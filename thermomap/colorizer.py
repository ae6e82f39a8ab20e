"""
Colorizer: maps the accumulated heat through the palette into RGBA.

Heat is the single accumulated channel of the density buffer (the sprite is
grayscale, so there is no RGB-vs-alpha ambiguity). Alpha grows with heat,
so cold areas stay transparent. One vectorized pass over every pixel.
"""

import numpy as np

from .palette import LUT_SIZE, Palette


def colorize(heat: np.ndarray, palette: Palette, gamma: float = 1.0,
             opacity: float = 1.0, alpha_boost: int = 0) -> np.ndarray:
    """
    Convert a heat buffer into an RGBA image.

    Args:
        heat: float (H, W) values, clamped here to [0, 1]
        palette: Palette providing the 256-entry lookup table
        gamma: Exponent applied to heat before colour lookup only
        opacity: Alpha at full heat, as a fraction of 255
        alpha_boost: Added to the alpha of every non-transparent pixel, clamped at 255

    Returns:
        uint8 (H, W, 4) RGBA array; zero-heat pixels are (0, 0, 0, 0)
    """
    h = np.clip(np.nan_to_num(heat, nan=0.0), 0.0, 1.0).astype(np.float32)

    t = h if gamma == 1.0 else np.power(h, gamma, dtype=np.float32)
    index = np.rint(t * (LUT_SIZE - 1)).astype(np.intp)

    alpha = np.rint(h * (255.0 * opacity))
    visible = alpha > 0
    if alpha_boost:
        alpha = np.where(visible, alpha + alpha_boost, 0)
    alpha = np.clip(alpha, 0, 255).astype(np.uint8)

    rgba = np.zeros(h.shape + (4,), dtype=np.uint8)
    rgba[..., :3] = palette.lut[index]
    rgba[..., 3] = alpha
    rgba[~visible] = 0
    return rgba
