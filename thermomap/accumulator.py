"""
Density accumulator: additive stamping of the kernel sprite at every point.

Each point contributes sprite * alpha, alpha = clamp(intensity / max, 0, 1).
Stamps are summed (additive blending), so clusters read hotter than
isolated points, then the sum saturates at 1.0 rather than overflowing.

Stamping is done as a convolution of a sparse point map with the sprite,
which is exactly the sum of the individual stamps.
"""

import os
from typing import Optional

import numpy as np
import torch

from .kernel import AdaptiveConvolution, SpriteCache

# Optimize torch for CPU if needed
torch.set_num_threads(os.cpu_count() or 1)


class DensityAccumulator:
    """
    Builds the per-render heat buffer (float32, values in [0, 1]).

    Attributes:
        sprites (SpriteCache): Shared, invalidation-keyed sprite cache
        adaptive_conv (AdaptiveConvolution): conv2d / FFT selector with call stats
    """

    def __init__(self, sprites: SpriteCache, device: Optional[torch.device] = None):
        self.sprites = sprites
        self.device = device or torch.device('cuda' if torch.cuda.is_available() else 'cpu')
        self.adaptive_conv = AdaptiveConvolution()

    def accumulate(self, xs: np.ndarray, ys: np.ndarray, alpha: np.ndarray, radii: np.ndarray,
                   blur: float, pixel_scale: float, ratio: float, shape: tuple,
                   clip_mask: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Accumulate every point into a fresh heat buffer.

        Args:
            xs, ys: Projected positions in logical pixels
            alpha: Normalized intensities in [0, 1]
            radii: Per-point kernel radius in logical pixels
            blur: Kernel blur band in logical pixels
            pixel_scale: Device pixels per logical pixel
            ratio: Viewport width / reference width (sprite cache key)
            shape: (H, W) of the device-resolution buffer
            clip_mask: Optional float32 (H, W) mask, 1 inside the clip region

        Returns:
            float32 (H, W) heat buffer clamped to [0, 1]
        """
        H, W = shape
        heat = np.zeros((H, W), dtype=np.float32)

        # Cheap early-out for points that contribute nothing
        keep = np.asarray(alpha) > 0
        if not keep.any():
            return heat

        xs_dev = np.asarray(xs, dtype=np.float64)[keep] * pixel_scale
        ys_dev = np.asarray(ys, dtype=np.float64)[keep] * pixel_scale
        alpha = np.asarray(alpha, dtype=np.float32)[keep]
        radii = np.asarray(radii, dtype=np.float64)[keep]

        for radius in np.unique(radii):
            group = radii == radius
            sprite = self.sprites.get(float(radius), blur, pixel_scale, ratio)
            layer = self._stamp_group(xs_dev[group], ys_dev[group], alpha[group], sprite, H, W)
            if layer is not None:
                heat += layer

        # Saturate instead of overflowing
        np.clip(heat, 0.0, 1.0, out=heat)

        if clip_mask is not None:
            heat *= clip_mask

        return heat

    def _stamp_group(self, xs_dev, ys_dev, alpha, sprite, H, W) -> Optional[np.ndarray]:
        """Stamp one sprite at every point of a group; None if all fall off-surface."""
        half = sprite.half
        padded_shape = (H + 2 * half, W + 2 * half)

        # Points whose footprint can reach the surface
        inside = (
            (xs_dev >= -half) & (xs_dev < W + half)
            & (ys_dev >= -half) & (ys_dev < H + half)
        )
        if not inside.any():
            return None

        ix = np.floor(xs_dev[inside]).astype(np.int64) + half
        iy = np.floor(ys_dev[inside]).astype(np.int64) + half

        point_map_np = np.zeros(padded_shape, dtype=np.float32)
        np.add.at(point_map_np, (iy, ix), alpha[inside])  # Coincident points sum

        point_map = torch.from_numpy(point_map_np).to(self.device)
        kernel = torch.from_numpy(sprite.bitmap).to(self.device)

        if self.adaptive_conv.should_use_fft(padded_shape, sprite.bitmap.shape):
            kernel_fft = self.sprites.get_fft_kernel(sprite, padded_shape, self.device)
            layer = self.adaptive_conv(point_map, kernel, force_method='fft', kernel_fft=kernel_fft)
        else:
            layer = self.adaptive_conv(point_map, kernel, force_method='conv2d')

        result = layer.cpu().numpy().astype(np.float32)

        # Explicit memory cleanup
        del point_map, kernel, layer
        if self.device.type == 'cuda':
            torch.cuda.empty_cache()

        # FFT round-off can leave tiny negatives
        np.maximum(result, 0.0, out=result)
        return result
