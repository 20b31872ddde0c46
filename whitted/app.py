import logging
import time
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from whitted.common import Light, Scene, Settings, Sphere, make_material, scene_summary, tone_map

logger = logging.getLogger(__name__)


class App:
    name = "base"

    def __init__(self, settings: Settings, scene: Optional[Scene] = None):
        self.settings = settings
        self.scene = scene if scene is not None else self.create_scene()

        # linear, possibly > 1, one row per image line
        self.framebuffer = np.zeros(
            (settings.height, settings.width, 3),
            dtype=np.float64,
        )
        self.image = np.zeros(
            (settings.height, settings.width, 3),
            dtype=np.float32,
        )

    def run(self) -> NDArray[np.float32]:
        logger.info(
            "Rendering %dx%d (%s) with the %s renderer",
            self.settings.width,
            self.settings.height,
            scene_summary(self.scene),
            self.name,
        )
        start = time.perf_counter()
        self.framebuffer = self.render()
        self.image = tone_map(self.framebuffer).astype(np.float32)
        logger.info("Rendered in %.2fs", time.perf_counter() - start)
        return self.image

    def render(self) -> NDArray[np.float64]:
        raise NotImplementedError

    def create_scene(self) -> Scene:
        ivory = make_material(
            diffuse_color=[0.4, 0.4, 0.3],
            albedo=[0.6, 0.3, 0.1, 0.0],
            specular_exponent=50.0,
        )
        glass = make_material(
            diffuse_color=[0.6, 0.7, 0.8],
            albedo=[0.0, 0.5, 0.1, 0.8],
            specular_exponent=125.0,
            refractive_index=1.5,
        )
        red_rubber = make_material(
            diffuse_color=[0.3, 0.1, 0.1],
            albedo=[0.9, 0.1, 0.0, 0.0],
            specular_exponent=10.0,
        )
        mirror = make_material(
            diffuse_color=[1.0, 1.0, 1.0],
            albedo=[0.0, 10.0, 0.8, 0.0],
            specular_exponent=1425.0,
        )

        return Scene(
            spheres=[
                Sphere(center=[-3.0, 0.0, -16.0], radius=2, material=ivory),
                Sphere(center=[-1.0, -1.5, -12.0], radius=2, material=glass),
                Sphere(center=[1.5, -0.5, -18.0], radius=3, material=red_rubber),
                Sphere(center=[7.0, 5.0, -18.0], radius=4, material=mirror),
            ],
            lights=[
                Light(position=[-20.0, 20.0, 20.0], intensity=1.5),
                Light(position=[30.0, 50.0, -25.0], intensity=1.8),
                Light(position=[30.0, 20.0, 30.0], intensity=1.7),
            ],
        )
