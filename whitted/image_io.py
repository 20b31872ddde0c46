import logging
from pathlib import Path
from typing import Union

import numpy as np
from matplotlib import image as mpimg
from numpy.typing import NDArray

logger = logging.getLogger(__name__)


def quantize(image: NDArray) -> NDArray[np.uint8]:
    # NaN channels saturate, like a clamp that compares against them
    clamped = np.clip(np.nan_to_num(image, nan=1.0), 0.0, 1.0)
    return (255 * clamped).astype(np.uint8)


def write_ppm(path: Union[str, Path], image: NDArray) -> None:
    height, width, _ = image.shape
    with open(path, "wb") as fh:
        fh.write(f"P6\n{width} {height}\n255\n".encode("ascii"))
        fh.write(quantize(image).tobytes())


def write_image(path: Union[str, Path], image: NDArray) -> None:
    """Save a tone-mapped ``(height, width, 3)`` image, picking the format from the file suffix."""
    path = Path(path)
    if path.suffix.lower() == ".ppm":
        write_ppm(path, image)
    else:
        mpimg.imsave(path, quantize(image))
    logger.info("Wrote %s", path)
