"""Pytest configuration and shared fixtures."""

import numpy as np
import pytest

from whitted.common import Light, Material, Scene, Sphere


@pytest.fixture
def red_rubber():
    return Material(
        refractive_index=1.0,
        albedo=[0.9, 0.1, 0.0, 0.0],
        diffuse_color=[0.3, 0.1, 0.1],
        specular_exponent=10.0,
    )


@pytest.fixture
def glass():
    return Material(
        refractive_index=1.5,
        albedo=[0.0, 0.5, 0.1, 0.8],
        diffuse_color=[0.6, 0.7, 0.8],
        specular_exponent=125.0,
    )


@pytest.fixture
def mirror():
    return Material(
        refractive_index=1.0,
        albedo=[0.0, 10.0, 0.8, 0.0],
        diffuse_color=[1.0, 1.0, 1.0],
        specular_exponent=1425.0,
    )


@pytest.fixture
def small_scene(red_rubber, glass, mirror):
    """A few overlapping spheres that exercise shadows, reflection and refraction."""
    return Scene(
        spheres=[
            Sphere(center=[-1.0, -1.5, -12.0], radius=2, material=glass),
            Sphere(center=[1.5, -0.5, -18.0], radius=3, material=red_rubber),
            Sphere(center=[7.0, 5.0, -18.0], radius=4, material=mirror),
        ],
        lights=[
            Light(position=[-20.0, 20.0, 20.0], intensity=1.5),
            Light(position=[30.0, 50.0, -25.0], intensity=1.8),
        ],
    )


@pytest.fixture
def origin():
    return np.zeros(3)
