"""Loader for the line-oriented scene description format.

A scene file lists, one item per line::

    output.ppm
    640 480
    0 0 0                   # camera position
    0 0 -1                  # look-at point
    0 1 0                   # up vector
    60                      # vertical field of view, degrees
    2                       # lights: x y z [intensity]
    -20 20 20 1.5
    30 50 -25
    1                       # pigments: solid r g b
    solid 0.4 0.4 0.3
    1                       # finishes: diffuse specular reflection refraction exponent [index]
    0.6 0.3 0.1 0 50 1.0
    1                       # objects: pigment finish sphere x y z radius
    0 0 sphere -3 0 -16 2

Blank lines and anything after ``#`` are ignored. The renderer uses a fixed pinhole camera at
the origin looking down -Z with a 60 degree field of view, so the camera lines are validated
but any other setting only produces a warning.
"""

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np
from numpy.typing import NDArray

from whitted.common import FOV, Light, Scene, Sphere, as_vector, make_material

logger = logging.getLogger(__name__)

DEFAULT_CAMERA = (0.0, 0.0, 0.0)
DEFAULT_LOOK_AT = (0.0, 0.0, -1.0)
DEFAULT_UP = (0.0, 1.0, 0.0)


class SceneParseError(ValueError):
    def __init__(self, message: str, source: str = "<string>", line_number: Optional[int] = None):
        self.message = message
        self.source = source
        self.line_number = line_number
        location = source if line_number is None else f"{source}:{line_number}"
        super().__init__(f"{location}: {message}")


@dataclass(frozen=True, eq=False)
class SceneDescription:
    output: str
    width: int
    height: int
    camera: NDArray[np.float64]
    look_at: NDArray[np.float64]
    up: NDArray[np.float64]
    fovy: float
    scene: Scene


class _Lines:
    def __init__(self, text: str, source: str):
        self.source = source
        stripped = (
            (number, line.split("#", 1)[0].strip())
            for number, line in enumerate(text.splitlines(), start=1)
        )
        self._pending: List[Tuple[int, str]] = [(number, line) for number, line in stripped if line]
        self._pos = 0
        self.line_number: Optional[int] = None

    def error(self, message: str) -> SceneParseError:
        return SceneParseError(message, self.source, self.line_number)

    def next(self, what: str) -> List[str]:
        if self._pos >= len(self._pending):
            self.line_number = None
            raise self.error(f"unexpected end of file, expected {what}")
        self.line_number, line = self._pending[self._pos]
        self._pos += 1
        return line.split()

    def remaining(self) -> bool:
        return self._pos < len(self._pending)

    def number(self, token: str, what: str) -> float:
        try:
            value = float(token)
        except ValueError:
            raise self.error(f"{what}: {token!r} is not a number") from None
        if not math.isfinite(value):
            raise self.error(f"{what}: {token!r} is not finite")
        return value

    def integer(self, token: str, what: str) -> int:
        try:
            return int(token)
        except ValueError:
            raise self.error(f"{what}: {token!r} is not an integer") from None

    def numbers(self, what: str, minimum: int, maximum: Optional[int] = None) -> List[float]:
        fields = self.next(what)
        maximum = minimum if maximum is None else maximum
        if not minimum <= len(fields) <= maximum:
            expected = str(minimum) if minimum == maximum else f"{minimum} to {maximum}"
            raise self.error(f"{what}: expected {expected} values, got {len(fields)}")
        return [self.number(field, what) for field in fields]

    def count(self, what: str) -> int:
        fields = self.next(f"{what} count")
        if len(fields) != 1:
            raise self.error(f"{what} count: expected a single integer")
        value = self.integer(fields[0], f"{what} count")
        if value < 0:
            raise self.error(f"{what} count must not be negative")
        return value

    def index(self, token: str, what: str, size: int) -> int:
        value = self.integer(token, what)
        if not 0 <= value < size:
            raise self.error(f"{what} {value} out of range (0..{size - 1})")
        return value


def _parse_light(lines: _Lines) -> Light:
    values = lines.numbers("light", 3, 4)
    intensity = values[3] if len(values) == 4 else 1.0
    if intensity < 0:
        raise lines.error("light intensity must not be negative")
    return Light(position=values[:3], intensity=intensity)


def _parse_pigment(lines: _Lines) -> List[float]:
    fields = lines.next("pigment")
    if fields[0] != "solid":
        raise lines.error(f"unknown pigment type {fields[0]!r}, expected 'solid'")
    if len(fields) != 4:
        raise lines.error(f"pigment: expected 'solid r g b', got {len(fields) - 1} values")
    return [lines.number(field, "pigment") for field in fields[1:]]


def _parse_finish(lines: _Lines) -> Tuple[List[float], float, float]:
    values = lines.numbers("finish", 5, 6)
    albedo = values[:4]
    specular_exponent = values[4]
    refractive_index = values[5] if len(values) == 6 else 1.0
    if specular_exponent < 0:
        raise lines.error("specular exponent must not be negative")
    if refractive_index <= 0:
        raise lines.error("refractive index must be positive")
    return albedo, specular_exponent, refractive_index


def _parse_object(lines: _Lines, pigments, finishes) -> Sphere:
    fields = lines.next("object")
    if len(fields) < 3:
        raise lines.error("object: expected '<pigment> <finish> sphere x y z radius'")
    pigment = lines.index(fields[0], "pigment index", len(pigments))
    finish = lines.index(fields[1], "finish index", len(finishes))
    if fields[2] != "sphere":
        raise lines.error(f"unsupported object type {fields[2]!r}")
    if len(fields) != 7:
        raise lines.error(f"sphere: expected 4 values, got {len(fields) - 3}")
    x, y, z, radius = (lines.number(field, "sphere") for field in fields[3:])
    if radius <= 0:
        raise lines.error("sphere radius must be positive")

    albedo, specular_exponent, refractive_index = finishes[finish]
    material = make_material(
        diffuse_color=pigments[pigment],
        albedo=albedo,
        specular_exponent=specular_exponent,
        refractive_index=refractive_index,
    )
    return Sphere(center=[x, y, z], radius=radius, material=material)


def _points_along(vector: NDArray[np.float64], axis) -> bool:
    length = np.linalg.norm(vector)
    return bool(length > 0 and np.allclose(vector / length, axis))


def parse_scene(text: str, source: str = "<string>") -> SceneDescription:
    lines = _Lines(text, source)

    output = " ".join(lines.next("output file name"))

    size = lines.next("image size")
    if len(size) != 2:
        raise lines.error("image size: expected '<width> <height>'")
    width, height = (lines.integer(field, "image size") for field in size)
    if width <= 0 or height <= 0:
        raise lines.error(f"image size must be positive, got {width}x{height}")

    camera = as_vector(lines.numbers("camera position", 3))
    look_at = as_vector(lines.numbers("look-at point", 3))
    up = as_vector(lines.numbers("up vector", 3))
    (fovy,) = lines.numbers("field of view", 1)

    lights = [_parse_light(lines) for _ in range(lines.count("light"))]
    pigments = [_parse_pigment(lines) for _ in range(lines.count("pigment"))]
    finishes = [_parse_finish(lines) for _ in range(lines.count("finish"))]
    spheres = [_parse_object(lines, pigments, finishes) for _ in range(lines.count("object"))]

    if lines.remaining():
        lines.next("end of file")
        raise lines.error("unexpected content after the object list")

    if (
        not np.allclose(camera, DEFAULT_CAMERA)
        or not _points_along(look_at - camera, DEFAULT_LOOK_AT)
        or not _points_along(up, DEFAULT_UP)
    ):
        logger.warning("%s: camera placement is ignored, rendering from the origin down -Z", source)
    if not math.isclose(math.radians(fovy), FOV):
        logger.warning("%s: field of view %g is ignored, using %g degrees", source, fovy, math.degrees(FOV))

    return SceneDescription(
        output=output,
        width=width,
        height=height,
        camera=camera,
        look_at=look_at,
        up=up,
        fovy=fovy,
        scene=Scene(spheres=spheres, lights=lights),
    )


def load_scene(path: Union[str, Path]) -> SceneDescription:
    path = Path(path)
    return parse_scene(path.read_text(encoding="utf-8"), source=str(path))
