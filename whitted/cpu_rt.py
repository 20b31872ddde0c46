import logging
import math
from dataclasses import dataclass
from functools import partial
from multiprocessing import Pool
from typing import Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from whitted.common import BACKGROUND_COLOR, EPSILON, FOV, HORIZON, MAX_DEPTH, Material, Scene, Sphere
from whitted.app import App

logger = logging.getLogger(__name__)

WHITE = np.array([1.0, 1.0, 1.0])
# Direction returned on total internal reflection. Not physical, matches the reference renders.
TIR_DIRECTION = np.array([1.0, 0.0, 0.0])


@dataclass
class Hit:
    point: NDArray[np.float64]
    normal: NDArray[np.float64]
    material: Material
    distance: float


def dot(u: NDArray[np.float64], v: NDArray[np.float64]) -> np.float64:
    return np.sum(u * v)


def norm(v: NDArray[np.float64]) -> np.float64:
    return np.sqrt(dot(v, v))


def normalize(v: NDArray[np.float64]) -> NDArray[np.float64]:
    return v / norm(v)


def intersect(sphere: Sphere, ray_origin: NDArray[np.float64], ray_dir: NDArray[np.float64]) -> float:
    to_center = sphere.center - ray_origin

    tca = dot(to_center, ray_dir)  # ray_dir is normalized, so this is the projection length
    d2 = dot(to_center, to_center) - tca * tca
    radius2 = sphere.radius * sphere.radius

    if d2 > radius2:
        return float("inf")

    thc = np.sqrt(radius2 - d2)
    t0 = tca - thc
    if t0 < 0:
        # origin is inside the sphere or the near root is behind it
        t0 = tca + thc
    return float("inf") if t0 < 0 else t0


def scene_intersect(scene: Scene, ray_origin: NDArray[np.float64], ray_dir: NDArray[np.float64]) -> Optional[Hit]:
    dist_to_nearest = float("inf")
    nearest: Optional[Sphere] = None
    for sphere in scene.spheres:
        dist = intersect(sphere, ray_origin, ray_dir)
        if dist < dist_to_nearest:
            dist_to_nearest = dist
            nearest = sphere

    if nearest is None or not dist_to_nearest < HORIZON:
        return None

    point = ray_origin + ray_dir * dist_to_nearest
    normal = normalize(point - nearest.center)
    return Hit(point, normal, nearest.material, dist_to_nearest)


def reflect(incident: NDArray[np.float64], normal: NDArray[np.float64]) -> NDArray[np.float64]:
    return incident - normal * 2.0 * dot(incident, normal)


def refract(
    incident: NDArray[np.float64],
    normal: NDArray[np.float64],
    eta_t: float,
    eta_i: float = 1.0,
) -> NDArray[np.float64]:
    """Snell's law refraction of ``incident`` through a surface with the given normal.

    ``eta_t`` is the index on the transmitted side and ``eta_i`` the index of the medium the ray
    travels in. A ray arriving from inside the object is handled by flipping the normal and
    swapping the indices.
    """
    cosi = -max(-1.0, min(1.0, dot(incident, normal)))
    if cosi < 0:
        return refract(incident, -normal, eta_i, eta_t)

    eta = np.float64(eta_i) / eta_t
    k = 1 - eta * eta * (1 - cosi * cosi)
    if k < 0:
        return TIR_DIRECTION.copy()
    return incident * eta + normal * (eta * cosi - np.sqrt(k))


def offset_origin(point: NDArray[np.float64], direction: NDArray[np.float64], normal: NDArray[np.float64]) -> NDArray[np.float64]:
    # keep the new ray off the surface it starts from
    if dot(direction, normal) < 0:
        return point - normal * EPSILON
    return point + normal * EPSILON


def local_illumination(scene: Scene, hit: Hit, ray_dir: NDArray[np.float64]) -> Tuple[float, float]:
    """Accumulate the Lambert and Phong intensities of every light that is not shadowed at ``hit``."""
    diffuse = 0.0
    specular = 0.0
    for light in scene.lights:
        to_light = light.position - hit.point
        light_dir = normalize(to_light)
        light_distance = norm(to_light)

        shadow_origin = offset_origin(hit.point, light_dir, hit.normal)
        blocker = scene_intersect(scene, shadow_origin, light_dir)
        if blocker is not None and blocker.distance < light_distance:
            continue

        diffuse += light.intensity * max(0.0, dot(light_dir, hit.normal))
        highlight = np.float64(max(0.0, -dot(reflect(-light_dir, hit.normal), ray_dir)))
        specular += highlight ** hit.material.specular_exponent * light.intensity

    return diffuse, specular


def shade(
    scene: Scene,
    hit: Hit,
    ray_dir: NDArray[np.float64],
    reflect_color: NDArray[np.float64],
    refract_color: NDArray[np.float64],
) -> NDArray[np.float64]:
    diffuse, specular = local_illumination(scene, hit, ray_dir)
    material = hit.material
    albedo = material.albedo
    return (
        material.diffuse_color * diffuse * albedo[0]
        + WHITE * specular * albedo[1]
        + reflect_color * albedo[2]
        + refract_color * albedo[3]
    )


def trace_secondary(
    scene: Scene,
    hit: Hit,
    direction: NDArray[np.float64],
    weight: float,
    depth: int,
) -> NDArray[np.float64]:
    # a zero weight would only multiply the traced color away
    if weight == 0:
        return np.zeros(3)
    return cast_ray(scene, offset_origin(hit.point, direction, hit.normal), direction, depth)


def cast_ray(scene: Scene, ray_origin: NDArray[np.float64], ray_dir: NDArray[np.float64], depth: int = 0) -> NDArray[np.float64]:
    if depth > MAX_DEPTH:
        return np.array(BACKGROUND_COLOR)

    hit = scene_intersect(scene, ray_origin, ray_dir)
    if hit is None:
        return np.array(BACKGROUND_COLOR)

    albedo = hit.material.albedo
    reflect_dir = normalize(reflect(ray_dir, hit.normal))
    refract_dir = normalize(refract(ray_dir, hit.normal, hit.material.refractive_index))
    reflect_color = trace_secondary(scene, hit, reflect_dir, albedo[2], depth + 1)
    refract_color = trace_secondary(scene, hit, refract_dir, albedo[3], depth + 1)

    return shade(scene, hit, ray_dir, reflect_color, refract_color)


def primary_ray_dir(i: int, j: int, width: int, height: int, fov: float = FOV) -> NDArray[np.float64]:
    dir_x = (i + 0.5) - width / 2.0
    dir_y = -(j + 0.5) + height / 2.0  # row 0 is the top of the image
    dir_z = -height / (2.0 * math.tan(fov / 2.0))
    return normalize(np.array([dir_x, dir_y, dir_z]))


def render_row(scene: Scene, width: int, height: int, j: int) -> NDArray[np.float64]:
    origin = np.zeros(3)
    row = np.zeros((width, 3), dtype=np.float64)
    # degenerate scene data yields inf/nan pixels, not errors
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        for i in range(width):
            row[i, :] = cast_ray(scene, origin, primary_ray_dir(i, j, width, height))
    return row


def render(scene: Scene, width: int, height: int, workers: int = 1) -> NDArray[np.float64]:
    """Render ``scene`` into an unbounded linear framebuffer of shape ``(height, width, 3)``."""
    framebuffer = np.zeros((height, width, 3), dtype=np.float64)
    task = partial(render_row, scene, width, height)

    if workers == 1:
        for j in range(height):
            framebuffer[j] = task(j)
        return framebuffer

    logger.debug("Distributing %d rows over %d processes", height, workers)
    with Pool(processes=workers) as pool:
        for j, row in enumerate(pool.map(task, range(height))):
            framebuffer[j] = row
    return framebuffer


class CpuApp(App):
    name = "cpu"

    def render(self) -> NDArray[np.float64]:
        return render(self.scene, self.settings.width, self.settings.height, self.settings.workers)
