"""
Kernel sprite builder, sprite cache and adaptive convolution.

One soft radial footprint ("splat") is rendered per (radius, blur, pixel
scale, reference-width ratio) and stamped at every point by convolving a
sparse point map with it:
- Spatial conv2d for small kernels
- FFT convolution (cached kernel spectrum) when it is cheaper

The kernel profile is a Gaussian with sigma = radius / SIGMA_RATIO, tapered
smoothly to zero between radius and radius + blur. The intensity query
evaluates the same profile, so tooltips agree with the painted heat.
"""

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np
import torch
import torch.nn.functional as F

from .config import SIGMA_RATIO, HeatmapConfig


def kernel_profile(d2, radius: float, blur: float) -> np.ndarray:
    """
    Kernel weight at squared distance d2 (same units as radius).

    exp(-d2 / (2 sigma^2)) inside the radius, smoothstep-tapered to 0 at
    radius + blur, and 0 beyond. Weight at the centre is exactly 1.
    """
    d2 = np.asarray(d2, dtype=np.float64)
    radius = np.asarray(radius, dtype=np.float64)
    sigma = radius / SIGMA_RATIO
    weight = np.exp(-d2 / (2.0 * sigma * sigma))

    d = np.sqrt(d2)
    if blur > 0:
        s = np.clip((d - radius) / blur, 0.0, 1.0)
        taper = 1.0 - s * s * (3.0 - 2.0 * s)
    else:
        taper = (d <= radius).astype(np.float64)
    return weight * taper


def scaled_kernel(config: HeatmapConfig, width: int) -> Tuple[float, float, float]:
    """
    Radius and blur in logical pixels for a viewport width.

    Returns:
        (radius, blur, ratio) where ratio = width / reference_width
    """
    ratio = width / config.reference_width
    radius = max(config.min_radius, config.radius * ratio)
    blur = max(0.0, config.blur * ratio)
    return radius, blur, ratio


def point_radii(norm: np.ndarray, radius: float, modulation: float = 0.0) -> np.ndarray:
    """
    Per-point kernel radius (logical px).

    With modulation m > 0 hotter points get larger kernels:
    radius * (1 - m + m * norm), rounded to whole pixels so points share sprites.
    """
    norm = np.asarray(norm, dtype=np.float64)
    if modulation <= 0:
        return np.full(norm.shape, float(radius))
    return np.maximum(1.0, np.round(radius * (1.0 - modulation + modulation * norm)))


@dataclass(frozen=True)
class KernelSprite:
    """
    Pre-rendered kernel footprint.

    Attributes:
        radius, blur: Logical pixels
        pixel_scale: Device pixels per logical pixel
        bitmap: float32 (dim x dim) weights in [0, 1], opaque centre
        half: Centre index; dim = 2 * half + 1
    """
    radius: float
    blur: float
    pixel_scale: float
    bitmap: np.ndarray
    half: int

    @property
    def dim(self) -> int:
        return self.bitmap.shape[0]

    @property
    def extent(self) -> float:
        """Logical radius where the footprint reaches zero."""
        return self.radius + self.blur


def build_sprite(radius: float, blur: float, pixel_scale: float) -> KernelSprite:
    """Render the radial footprint at device resolution, sized 2*(radius+blur)*scale."""
    half = max(1, int(math.ceil((radius + blur) * pixel_scale)))
    y, x = np.ogrid[-half:half + 1, -half:half + 1]
    # Distances in logical pixels
    d2 = (x * x + y * y) / (pixel_scale * pixel_scale)
    bitmap = kernel_profile(d2, radius, blur).astype(np.float32)
    return KernelSprite(radius=radius, blur=blur, pixel_scale=pixel_scale, bitmap=bitmap, half=half)


class SpriteCache:
    """
    Memoized kernel sprites and their FFT spectra.

    Keyed by (radius, blur, pixel_scale, ratio). A change of blur, scale or
    ratio invalidates every entry; several radii may coexist when radius
    modulation is on.
    """

    def __init__(self):
        self._generation = None
        self._sprites = {}   # (radius, blur, scale, ratio) -> KernelSprite
        self._fft_cache = {}  # (sprite key, H, W) -> torch.Tensor
        self._fft_surface = None
        self.builds = 0

    def get(self, radius: float, blur: float, pixel_scale: float, ratio: float) -> KernelSprite:
        generation = (blur, pixel_scale, ratio)
        if generation != self._generation:
            self.invalidate()
            self._generation = generation

        key = (radius, blur, pixel_scale, ratio)
        sprite = self._sprites.get(key)
        if sprite is None:
            sprite = build_sprite(radius, blur, pixel_scale)
            self._sprites[key] = sprite
            self.builds += 1
        return sprite

    def get_fft_kernel(self, sprite: KernelSprite, padded_shape: tuple, device: torch.device) -> torch.Tensor:
        """
        Real FFT of the sprite, zero-padded to the padded image shape and
        rolled so its centre sits at (0, 0).
        """
        H, W = padded_shape
        # Spectra are only reused for one surface size; a resize drops the rest
        surface = (H - 2 * sprite.half, W - 2 * sprite.half)
        if surface != self._fft_surface:
            self._fft_cache = {}
            self._fft_surface = surface

        cache_key = (sprite.radius, sprite.blur, sprite.pixel_scale, H, W)

        if cache_key not in self._fft_cache:
            h = sprite.dim
            padded = np.zeros((H, W), dtype=np.float32)
            padded[:h, :h] = sprite.bitmap
            padded = np.roll(padded, (-sprite.half, -sprite.half), axis=(0, 1))
            kernel_tensor = torch.from_numpy(padded).to(device)
            self._fft_cache[cache_key] = torch.fft.rfft2(kernel_tensor)

        return self._fft_cache[cache_key]

    def invalidate(self):
        """Drop every sprite and spectrum."""
        self._generation = None
        self._sprites = {}
        self._fft_cache = {}
        self._fft_surface = None

    def get_stats(self) -> dict:
        return {
            'sprites': len(self._sprites),
            'fft_kernels': len(self._fft_cache),
            'builds': self.builds,
            'radii': sorted(key[0] for key in self._sprites),
        }


class AdaptiveConvolution:
    """
    Chooses between spatial convolution and FFT-based convolution
    based on computational complexity.

    Inputs are point maps already padded by the kernel half-size on every
    side; the output is the "valid" region, i.e. the unpadded viewport.

    Complexity Analysis:
    - Spatial conv2d: O(H * W * h * w) where (H,W) is image size, (h,w) is kernel size
    - FFT method: O(H * W * log(H * W)) for FFT operations
    """

    def __init__(self, threshold_ratio=0.15):
        """
        Args:
            threshold_ratio: If (kernel_area / image_area) > threshold_ratio, use FFT.
        """
        self.threshold_ratio = threshold_ratio
        self.stats = {
            'conv2d_calls': 0,
            'fft_calls': 0
        }

    def _conv2d_method(self, image: torch.Tensor, kernel: torch.Tensor) -> torch.Tensor:
        """Spatial domain convolution (symmetric kernel, so correlation is convolution)."""
        result = F.conv2d(image.unsqueeze(0).unsqueeze(0), kernel.unsqueeze(0).unsqueeze(0))
        return result[0, 0]

    def _fft_method_cached(self, image: torch.Tensor, kernel_fft: torch.Tensor, half: int) -> torch.Tensor:
        """Circular FFT convolution; the crop removes every wrapped contribution."""
        H, W = image.shape
        Y = torch.fft.irfft2(torch.fft.rfft2(image) * kernel_fft, s=(H, W))
        return Y[half:H - half, half:W - half]

    def should_use_fft(self, image_shape: tuple, kernel_shape: tuple) -> bool:
        """Decide whether to use FFT based on complexity analysis."""
        H, W = image_shape
        h, w = kernel_shape

        if (h * w) / (H * W) > self.threshold_ratio:
            return True

        spatial_ops = H * W * h * w
        fft_ops = 3 * H * W * math.log2(H * W)
        return fft_ops < spatial_ops

    def convolve(self, image: torch.Tensor, kernel: torch.Tensor,
                 force_method: str = None, kernel_fft: torch.Tensor = None) -> torch.Tensor:
        """
        Valid-mode 2D convolution using the optimal method.

        Args:
            image: Padded point map (H + 2*half, W + 2*half)
            kernel: Square sprite tensor (2*half + 1)
            force_method: 'conv2d', 'fft', or None for auto-select
            kernel_fft: Spectrum from SpriteCache.get_fft_kernel (required for FFT)
        """
        half = kernel.shape[0] // 2
        if force_method is None:
            use_fft = kernel_fft is not None and self.should_use_fft(image.shape, kernel.shape)
        else:
            use_fft = force_method == 'fft'

        if use_fft:
            if kernel_fft is None:
                raise ValueError("FFT convolution needs a precomputed kernel spectrum")
            self.stats['fft_calls'] += 1
            return self._fft_method_cached(image, kernel_fft, half)

        self.stats['conv2d_calls'] += 1
        return self._conv2d_method(image, kernel)

    def __call__(self, image: torch.Tensor, kernel: torch.Tensor,
                 force_method: str = None, kernel_fft: torch.Tensor = None) -> torch.Tensor:
        return self.convolve(image, kernel, force_method, kernel_fft)
