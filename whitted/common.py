import math
from dataclasses import dataclass, field
from typing import Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

BACKGROUND_COLOR = (0.2, 0.7, 0.8)
HORIZON = 1000.0  # hits farther than this are treated as misses
EPSILON = 1e-3
MAX_DEPTH = 4
FOV = math.pi / 3.0


def as_vector(values, size: int = 3) -> NDArray[np.float64]:
    vec = np.array(values, dtype=np.float64)
    if vec.shape != (size,):
        raise ValueError(f"Expected {size} components, got shape {vec.shape}")
    vec.flags.writeable = False
    return vec


@dataclass
class Settings:
    width: int = 1280
    height: int = 720
    workers: int = 1

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Image size must be positive, got {self.width}x{self.height}")
        if self.workers < 1:
            raise ValueError(f"Need at least one worker, got {self.workers}")


@dataclass(frozen=True, eq=False)
class Light:
    position: NDArray[np.float64]
    intensity: float = 1.0

    def __post_init__(self):
        object.__setattr__(self, "position", as_vector(self.position))
        object.__setattr__(self, "intensity", np.float64(self.intensity))


@dataclass(frozen=True, eq=False)
class Material:
    refractive_index: float
    albedo: NDArray[np.float64]  # diffuse, specular, reflection, refraction
    diffuse_color: NDArray[np.float64]
    specular_exponent: float

    def __post_init__(self):
        object.__setattr__(self, "refractive_index", np.float64(self.refractive_index))
        object.__setattr__(self, "albedo", as_vector(self.albedo, size=4))
        object.__setattr__(self, "diffuse_color", as_vector(self.diffuse_color))
        object.__setattr__(self, "specular_exponent", np.float64(self.specular_exponent))


@dataclass(frozen=True, eq=False)
class Sphere:
    center: NDArray[np.float64]
    radius: float
    material: Material

    def __post_init__(self):
        object.__setattr__(self, "center", as_vector(self.center))
        object.__setattr__(self, "radius", np.float64(self.radius))


@dataclass(frozen=True, eq=False)
class Scene:
    spheres: Tuple[Sphere, ...] = field(default_factory=tuple)
    lights: Tuple[Light, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "spheres", tuple(self.spheres))
        object.__setattr__(self, "lights", tuple(self.lights))


def tone_map(framebuffer: NDArray[np.float64]) -> NDArray[np.float64]:
    """Scale down over-bright pixels so their brightest channel is 1, then clamp to [0, 1].

    Each pixel is scaled uniformly, so hue is preserved instead of clipping one channel.
    """
    peak = framebuffer.max(axis=-1, keepdims=True)
    with np.errstate(divide="ignore", invalid="ignore"):
        scale = np.where(peak > 1.0, 1.0 / peak, 1.0)
    return np.clip(framebuffer * scale, 0.0, 1.0)


def scene_summary(scene: Scene) -> str:
    return f"{len(scene.spheres)} spheres, {len(scene.lights)} lights"


def make_material(
    diffuse_color: Sequence[float],
    albedo: Sequence[float],
    specular_exponent: float,
    refractive_index: float = 1.0,
) -> Material:
    return Material(
        refractive_index=refractive_index,
        albedo=albedo,
        diffuse_color=diffuse_color,
        specular_exponent=specular_exponent,
    )
