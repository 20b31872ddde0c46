import logging
import math
from typing import Tuple

import numba
import numpy as np
from numpy.typing import NDArray

from whitted.common import BACKGROUND_COLOR, EPSILON, FOV, HORIZON, MAX_DEPTH, Scene
from whitted.app import App

logger = logging.getLogger(__name__)

# every pop pushes at most two rays, one level deeper
STACK_SIZE = 2 * (MAX_DEPTH + 2)

BG_R, BG_G, BG_B = BACKGROUND_COLOR

# material table columns
REFRACTIVE_INDEX = 0
ALBEDO = 1
DIFFUSE_COLOR = 5
SPECULAR_EXPONENT = 8
MATERIAL_COLUMNS = 9

device_function = numba.njit(error_model="numpy")


@device_function
def add(vec1, vec2):
    return vec1[0] + vec2[0], vec1[1] + vec2[1], vec1[2] + vec2[2]


@device_function
def sub(vec1, vec2):
    return vec1[0] - vec2[0], vec1[1] - vec2[1], vec1[2] - vec2[2]


@device_function
def mul_scalar(vec, x):
    return vec[0] * x, vec[1] * x, vec[2] * x


@device_function
def dot(vec1, vec2):
    return vec1[0] * vec2[0] + vec1[1] * vec2[1] + vec1[2] * vec2[2]


@device_function
def norm(vec):
    return math.sqrt(dot(vec, vec))


@device_function
def normalize(vec):
    length = norm(vec)
    return vec[0] / length, vec[1] / length, vec[2] / length


@device_function
def row3(array, row, start):
    return array[row, start], array[row, start + 1], array[row, start + 2]


@device_function
def set_row3(array, row, vec):
    array[row, 0] = vec[0]
    array[row, 1] = vec[1]
    array[row, 2] = vec[2]


@device_function
def reflect(incident, normal):
    return sub(incident, mul_scalar(normal, 2.0 * dot(incident, normal)))


@device_function
def refract(incident, normal, eta_t):
    eta_i = 1.0
    cosi = -max(-1.0, min(1.0, dot(incident, normal)))
    if cosi < 0:
        # leaving the object: flip the normal and swap the media
        cosi = -cosi
        normal = mul_scalar(normal, -1.0)
        eta_i, eta_t = eta_t, eta_i

    eta = eta_i / eta_t
    k = 1 - eta * eta * (1 - cosi * cosi)
    if k < 0:
        return 1.0, 0.0, 0.0
    return add(mul_scalar(incident, eta), mul_scalar(normal, eta * cosi - math.sqrt(k)))


@device_function
def offset_origin(point, direction, normal):
    if dot(direction, normal) < 0:
        return sub(point, mul_scalar(normal, EPSILON))
    return add(point, mul_scalar(normal, EPSILON))


@device_function
def intersect(center, radius, ray_origin, ray_dir):
    to_center = sub(center, ray_origin)
    tca = dot(to_center, ray_dir)
    d2 = dot(to_center, to_center) - tca * tca
    radius2 = radius * radius

    if d2 > radius2:
        return math.inf

    thc = math.sqrt(radius2 - d2)
    t0 = tca - thc
    if t0 < 0:
        t0 = tca + thc
    return math.inf if t0 < 0 else t0


@device_function
def scene_intersect(spheres, ray_origin, ray_dir):
    """Index of the nearest sphere within the horizon, or -1, and its distance."""
    dist_to_nearest = math.inf
    nearest = -1
    for s in range(spheres.shape[0]):
        dist = intersect(row3(spheres, s, 0), spheres[s, 3], ray_origin, ray_dir)
        if dist < dist_to_nearest:
            dist_to_nearest = dist
            nearest = s

    if dist_to_nearest >= HORIZON:
        nearest = -1
    return nearest, dist_to_nearest


@device_function
def local_illumination(spheres, lights, point, normal, ray_dir, specular_exponent):
    diffuse = 0.0
    specular = 0.0
    for n in range(lights.shape[0]):
        to_light = sub(row3(lights, n, 0), point)
        light_dir = normalize(to_light)
        light_distance = norm(to_light)

        shadow_origin = offset_origin(point, light_dir, normal)
        blocker, blocker_dist = scene_intersect(spheres, shadow_origin, light_dir)
        if blocker >= 0 and blocker_dist < light_distance:
            continue

        intensity = lights[n, 3]
        diffuse += intensity * max(0.0, dot(light_dir, normal))
        highlight = max(0.0, -dot(reflect(mul_scalar(light_dir, -1.0), normal), ray_dir))
        specular += highlight ** specular_exponent * intensity

    return diffuse, specular


@device_function
def trace(spheres, materials, lights, ray_origin, ray_dir):
    """Whitted-style trace of one primary ray using an explicit stack of weighted rays.

    Each stack entry carries the product of the albedo weights along its path, so the
    returned color is the same weighted sum the recursive formulation produces. The terms are
    added depth-first rather than innermost-first, so it matches ``cpu_rt.cast_ray`` only to
    within floating-point tolerance.
    """
    stack_origin = np.empty((STACK_SIZE, 3))
    stack_dir = np.empty((STACK_SIZE, 3))
    stack_depth = np.empty(STACK_SIZE, dtype=np.int64)
    stack_weight = np.empty(STACK_SIZE)

    set_row3(stack_origin, 0, ray_origin)
    set_row3(stack_dir, 0, ray_dir)
    stack_depth[0] = 0
    stack_weight[0] = 1.0
    top = 1

    r = 0.0
    g = 0.0
    b = 0.0
    while top > 0:
        top -= 1
        origin = row3(stack_origin, top, 0)
        direction = row3(stack_dir, top, 0)
        depth = stack_depth[top]
        weight = stack_weight[top]

        nearest = -1
        dist = math.inf
        if depth <= MAX_DEPTH:
            nearest, dist = scene_intersect(spheres, origin, direction)
        if nearest < 0:
            r += weight * BG_R
            g += weight * BG_G
            b += weight * BG_B
            continue

        point = add(origin, mul_scalar(direction, dist))
        normal = normalize(sub(point, row3(spheres, nearest, 0)))

        diffuse, specular = local_illumination(
            spheres, lights, point, normal, direction, materials[nearest, SPECULAR_EXPONENT],
        )
        kd = diffuse * materials[nearest, ALBEDO]
        ks = specular * materials[nearest, ALBEDO + 1]
        r += weight * (materials[nearest, DIFFUSE_COLOR] * kd + ks)
        g += weight * (materials[nearest, DIFFUSE_COLOR + 1] * kd + ks)
        b += weight * (materials[nearest, DIFFUSE_COLOR + 2] * kd + ks)

        reflect_weight = materials[nearest, ALBEDO + 2]
        if reflect_weight != 0:
            reflect_dir = normalize(reflect(direction, normal))
            set_row3(stack_origin, top, offset_origin(point, reflect_dir, normal))
            set_row3(stack_dir, top, reflect_dir)
            stack_depth[top] = depth + 1
            stack_weight[top] = weight * reflect_weight
            top += 1

        refract_weight = materials[nearest, ALBEDO + 3]
        if refract_weight != 0:
            refract_dir = normalize(refract(direction, normal, materials[nearest, REFRACTIVE_INDEX]))
            set_row3(stack_origin, top, offset_origin(point, refract_dir, normal))
            set_row3(stack_dir, top, refract_dir)
            stack_depth[top] = depth + 1
            stack_weight[top] = weight * refract_weight
            top += 1

    return r, g, b


@numba.njit(parallel=True, error_model="numpy")
def render_kernel(spheres, materials, lights, width, height, fov):
    framebuffer = np.zeros((height, width, 3))
    dir_z = -height / (2.0 * math.tan(fov / 2.0))
    origin = (0.0, 0.0, 0.0)

    for j in numba.prange(height):
        for i in range(width):
            direction = normalize(((i + 0.5) - width / 2.0, -(j + 0.5) + height / 2.0, dir_z))
            r, g, b = trace(spheres, materials, lights, origin, direction)
            framebuffer[j, i, 0] = r
            framebuffer[j, i, 1] = g
            framebuffer[j, i, 2] = b

    return framebuffer


def pack_scene(scene: Scene) -> Tuple[NDArray[np.float64], NDArray[np.float64], NDArray[np.float64]]:
    spheres = np.zeros((len(scene.spheres), 4), dtype=np.float64)
    materials = np.zeros((len(scene.spheres), MATERIAL_COLUMNS), dtype=np.float64)
    for s, sphere in enumerate(scene.spheres):
        spheres[s] = (*sphere.center, sphere.radius)
        material = sphere.material
        materials[s, REFRACTIVE_INDEX] = material.refractive_index
        materials[s, ALBEDO:ALBEDO + 4] = material.albedo
        materials[s, DIFFUSE_COLOR:DIFFUSE_COLOR + 3] = material.diffuse_color
        materials[s, SPECULAR_EXPONENT] = material.specular_exponent

    lights = np.zeros((len(scene.lights), 4), dtype=np.float64)
    for n, light in enumerate(scene.lights):
        lights[n] = (*light.position, light.intensity)

    return spheres, materials, lights


def render(scene: Scene, width: int, height: int, workers: int = 1) -> NDArray[np.float64]:
    threads = min(workers, numba.config.NUMBA_NUM_THREADS)
    logger.debug("Rendering with %d numba threads", threads)
    numba.set_num_threads(threads)
    return render_kernel(*pack_scene(scene), width, height, FOV)


class JitApp(App):
    name = "jit"

    def render(self) -> NDArray[np.float64]:
        return render(self.scene, self.settings.width, self.settings.height, self.settings.workers)
