"""
Color Conversion
================

Stateless helpers for slicing YUV buffers into planes and converting them
to RGB or between YCbCr matrices.

Conversion model:
    Y', Cb, Cr are first normalized according to the signal range:
        LIMITED:  Y' = (Y - 16) * 255/219,  C = (C - 128) * 255/224
        FULL:     Y' = Y,                   C = C - 128
    then mapped through the matrix given by (Kr, Kb):
        R = Y' + 2(1 - Kr) Cr
        G = Y' - 2Kb(1 - Kb)/Kg Cb - 2Kr(1 - Kr)/Kg Cr
        B = Y' + 2(1 - Kb) Cb

The default is limited-range BT.709. Callers pick range and matrix
explicitly; nothing here guesses.

Example:
    y, u, v = split_planes(data, PixelFormat.NV12, 640, 480)
    rgb = planes_to_rgb(y, u, v)   # (480, 640, 3) uint8
"""

from enum import Enum
from typing import Tuple

import cv2
import numpy as np

from message_shipper.models.image import PixelFormat


class YuvRange(str, Enum):
    """Signal range of Y/Cb/Cr samples."""

    LIMITED = "limited"
    FULL = "full"


class YuvMatrix(str, Enum):
    """YCbCr -> RGB matrix, named by standard."""

    BT601 = "bt601"
    BT709 = "bt709"

    @property
    def kr_kb(self) -> Tuple[float, float]:
        if self is YuvMatrix.BT601:
            return 0.299, 0.114
        return 0.2126, 0.0722


class ChromaInterpolation(str, Enum):
    """How subsampled chroma planes are brought up to luma resolution."""

    NEAREST = "nearest"
    LINEAR = "linear"

    @property
    def cv2_flag(self) -> int:
        if self is ChromaInterpolation.LINEAR:
            return cv2.INTER_LINEAR
        return cv2.INTER_NEAREST


DEFAULT_RANGE = YuvRange.LIMITED
DEFAULT_MATRIX = YuvMatrix.BT709


def matrix_coefficients(matrix: YuvMatrix) -> Tuple[float, float, float, float]:
    """
    Return (r_cr, g_cb, g_cr, b_cb) for a matrix.

    BT.709 gives roughly (1.5748, 0.1873, 0.4681, 1.8556).
    """
    kr, kb = matrix.kr_kb
    kg = 1.0 - kr - kb
    r_cr = 2.0 * (1.0 - kr)
    b_cb = 2.0 * (1.0 - kb)
    g_cb = 2.0 * kb * (1.0 - kb) / kg
    g_cr = 2.0 * kr * (1.0 - kr) / kg
    return r_cr, g_cb, g_cr, b_cb


def deinterleave_uv(uv: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Split an interleaved UV plane into separate U and V planes.

    Even-indexed bytes of each row go to U, odd-indexed bytes to V.
    """
    u = np.ascontiguousarray(uv[..., 0::2])
    v = np.ascontiguousarray(uv[..., 1::2])
    return u, v


def split_planes(
    data: bytes,
    pixel_format: PixelFormat,
    width: int,
    height: int,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Slice a YUV buffer into Y, U and V planes.

    Planes are views over data where the layout allows it (planar formats);
    NV12 chroma is copied while de-interleaving. Row strides equal the
    unpadded plane widths.

    Args:
        data: Raw pixel bytes
        pixel_format: One of the YUV formats
        width: Luma width
        height: Luma height

    Returns:
        (y, u, v) uint8 arrays shaped (rows, cols)

    Raises:
        ValueError: If data is shorter than the layout requires
    """
    expected = pixel_format.expected_size(width, height)
    if len(data) < expected:
        raise ValueError(
            f"{pixel_format.value} {width}x{height} needs {expected} bytes, "
            f"got {len(data)}"
        )

    buf = np.frombuffer(data, dtype=np.uint8, count=expected)
    luma_size = width * height
    chroma_h, chroma_w = pixel_format.chroma_shape(width, height)
    chroma_size = chroma_h * chroma_w

    y = buf[:luma_size].reshape(height, width)

    if pixel_format is PixelFormat.NV12:
        uv = buf[luma_size:luma_size + 2 * chroma_size].reshape(chroma_h, 2 * chroma_w)
        u, v = deinterleave_uv(uv)
        return y, u, v

    u = buf[luma_size:luma_size + chroma_size].reshape(chroma_h, chroma_w)
    v = buf[luma_size + chroma_size:luma_size + 2 * chroma_size].reshape(chroma_h, chroma_w)
    return y, u, v


def upsample_chroma(
    plane: np.ndarray,
    width: int,
    height: int,
    interpolation: ChromaInterpolation = ChromaInterpolation.NEAREST,
) -> np.ndarray:
    """Resize a chroma plane to (height, width); no-op when already there."""
    if plane.shape == (height, width):
        return plane
    return cv2.resize(
        np.ascontiguousarray(plane),
        (width, height),
        interpolation=interpolation.cv2_flag,
    )


def yuv_to_rgb(
    y: np.ndarray,
    u: np.ndarray,
    v: np.ndarray,
    yuv_range: YuvRange = DEFAULT_RANGE,
    matrix: YuvMatrix = DEFAULT_MATRIX,
) -> np.ndarray:
    """
    Convert full-resolution Y, U, V planes to a packed RGB array.

    Returns:
        Contiguous (H, W, 3) uint8 array, row stride width*3
    """
    luma = y.astype(np.float32)
    cb = u.astype(np.float32) - 128.0
    cr = v.astype(np.float32) - 128.0

    if yuv_range is YuvRange.LIMITED:
        luma = (luma - 16.0) * (255.0 / 219.0)
        cb *= 255.0 / 224.0
        cr *= 255.0 / 224.0

    r_cr, g_cb, g_cr, b_cb = matrix_coefficients(matrix)

    rgb = np.empty(y.shape + (3,), dtype=np.float32)
    rgb[..., 0] = luma + r_cr * cr
    rgb[..., 1] = luma - g_cb * cb - g_cr * cr
    rgb[..., 2] = luma + b_cb * cb

    np.rint(rgb, out=rgb)
    np.clip(rgb, 0.0, 255.0, out=rgb)
    return np.ascontiguousarray(rgb.astype(np.uint8))


def planes_to_rgb(
    y: np.ndarray,
    u: np.ndarray,
    v: np.ndarray,
    yuv_range: YuvRange = DEFAULT_RANGE,
    matrix: YuvMatrix = DEFAULT_MATRIX,
    interpolation: ChromaInterpolation = ChromaInterpolation.NEAREST,
) -> np.ndarray:
    """Upsample chroma to luma resolution and convert to RGB."""
    height, width = y.shape
    u_full = upsample_chroma(u, width, height, interpolation)
    v_full = upsample_chroma(v, width, height, interpolation)
    return yuv_to_rgb(y, u_full, v_full, yuv_range, matrix)


def _range_lut(luma: bool) -> np.ndarray:
    levels = np.arange(256, dtype=np.float32)
    if luma:
        mapped = (levels - 16.0) * (255.0 / 219.0)
    else:
        mapped = (levels - 128.0) * (255.0 / 224.0) + 128.0
    return np.clip(np.rint(mapped), 0, 255).astype(np.uint8)


_LUMA_LUT = _range_lut(luma=True)
_CHROMA_LUT = _range_lut(luma=False)


def expand_range(plane: np.ndarray, luma: bool) -> np.ndarray:
    """Stretch a limited-range plane to full range with a lookup table."""
    lut = _LUMA_LUT if luma else _CHROMA_LUT
    return lut[plane]


def _ycbcr_to_rgb_matrix(matrix: YuvMatrix) -> np.ndarray:
    r_cr, g_cb, g_cr, b_cb = matrix_coefficients(matrix)
    return np.array(
        [
            [1.0, 0.0, r_cr],
            [1.0, -g_cb, -g_cr],
            [1.0, b_cb, 0.0],
        ],
        dtype=np.float64,
    )


def rematrix(
    y: np.ndarray,
    cb: np.ndarray,
    cr: np.ndarray,
    source: YuvMatrix,
    target: YuvMatrix = YuvMatrix.BT601,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Re-express full-range YCbCr planes in another matrix.

    Goes YCbCr(source) -> RGB -> YCbCr(target) as one 3x3 transform, with
    no clipping in between so saturated colors survive. Planes must share
    one shape; the input is returned untouched when the matrices match.

    JPEG decoders assume BT.601, so BT.709 sources are rematrixed before
    encoding.
    """
    if source is target:
        return y, cb, cr

    transform = np.linalg.inv(_ycbcr_to_rgb_matrix(target)) @ _ycbcr_to_rgb_matrix(source)

    samples = np.stack([y, cb, cr], axis=-1).astype(np.float32)
    samples[..., 1:] -= 128.0
    converted = samples @ transform.T.astype(np.float32)
    converted[..., 1:] += 128.0

    np.rint(converted, out=converted)
    np.clip(converted, 0.0, 255.0, out=converted)
    planes = converted.astype(np.uint8)
    return (
        np.ascontiguousarray(planes[..., 0]),
        np.ascontiguousarray(planes[..., 1]),
        np.ascontiguousarray(planes[..., 2]),
    )
