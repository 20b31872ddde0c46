import logging

import numpy as np
import pytest

from whitted.scene_io import SceneParseError, load_scene, parse_scene

SAMPLE = """\
spheres.ppm
64 48
0 0 0
0 0 -1
0 1 0
60
2
-20 20 20 1.5
30 50 -25
2
solid 0.4 0.4 0.3
solid 1 0 0
2
0.6 0.3 0.1 0.0 50
0.0 0.5 0.1 0.8 125 1.5
3
0 0 sphere -3 0 -16 2
1 0 sphere 1.5 -0.5 -18 3
0 1 sphere -1 -1.5 -12 2
"""


def replace_line(text, number, new):
    lines = text.splitlines()
    lines[number - 1] = new
    return "\n".join(lines) + "\n"


def test_parse_sample():
    description = parse_scene(SAMPLE)

    assert description.output == "spheres.ppm"
    assert (description.width, description.height) == (64, 48)
    assert description.fovy == 60.0

    scene = description.scene
    assert len(scene.lights) == 2
    assert scene.lights[0].intensity == 1.5
    assert scene.lights[1].intensity == 1.0
    assert np.allclose(scene.lights[1].position, [30, 50, -25])

    assert len(scene.spheres) == 3
    ivory = scene.spheres[0]
    assert ivory.radius == 2.0
    assert np.allclose(ivory.center, [-3, 0, -16])
    assert np.allclose(ivory.material.diffuse_color, [0.4, 0.4, 0.3])
    assert np.allclose(ivory.material.albedo, [0.6, 0.3, 0.1, 0.0])
    assert ivory.material.refractive_index == 1.0
    assert ivory.material.specular_exponent == 50.0

    glass = scene.spheres[2]
    assert glass.material.refractive_index == 1.5
    assert np.allclose(scene.spheres[1].material.diffuse_color, [1, 0, 0])


def test_comments_and_blank_lines_are_ignored():
    text = "# demo scene\n\n" + SAMPLE.replace("60\n", "60   # degrees\n\n")
    assert len(parse_scene(text).scene.spheres) == 3


def test_load_scene_from_file(tmp_path):
    path = tmp_path / "demo.scene"
    path.write_text(SAMPLE)

    description = load_scene(path)

    assert description.output == "spheres.ppm"
    assert len(description.scene.spheres) == 3


def test_scene_without_objects():
    text = "out.ppm\n4 3\n0 0 0\n0 0 -1\n0 1 0\n60\n0\n0\n0\n0\n"
    description = parse_scene(text)
    assert description.scene.spheres == ()
    assert description.scene.lights == ()


@pytest.mark.parametrize(
    "line, content, message",
    [
        (2, "64", "image size"),
        (2, "0 48", "must be positive"),
        (6, "wide", "not a number"),
        (8, "-20 20 20 -1", "intensity"),
        (8, "-20 20 nan", "not finite"),
        (11, "marble 0.4 0.4 0.3", "unknown pigment"),
        (14, "0.6 0.3 0.1 0.0", "expected 5 to 6 values"),
        (15, "0.0 0.5 0.1 0.8 125 0", "refractive index"),
        (17, "0 0 sphere -3 0 -16 0", "radius"),
        (17, "0 5 sphere -3 0 -16 2", "finish index 5 out of range"),
        (17, "0 0 cube -3 0 -16 2", "unsupported object"),
        (17, "0 0 sphere -3 0 -16", "expected 4 values"),
    ],
)
def test_malformed_lines_are_rejected(line, content, message):
    with pytest.raises(SceneParseError) as excinfo:
        parse_scene(replace_line(SAMPLE, line, content), source="bad.scene")

    assert excinfo.value.line_number == line
    assert message in str(excinfo.value)
    assert str(excinfo.value).startswith(f"bad.scene:{line}:")


def test_truncated_file_is_rejected():
    truncated = "\n".join(SAMPLE.splitlines()[:-1])
    with pytest.raises(SceneParseError, match="unexpected end of file"):
        parse_scene(truncated)


def test_trailing_content_is_rejected():
    with pytest.raises(SceneParseError, match="after the object list") as excinfo:
        parse_scene(SAMPLE + "0 0 sphere 0 0 -5 1\n")
    assert excinfo.value.line_number == 20


def test_parse_error_is_a_value_error():
    with pytest.raises(ValueError):
        parse_scene("")


def test_moved_camera_is_reported(caplog):
    text = replace_line(SAMPLE, 3, "0 0 5")
    with caplog.at_level(logging.WARNING, logger="whitted"):
        parse_scene(text)
    assert "camera placement is ignored" in caplog.text


def test_translated_camera_target_is_accepted(caplog):
    text = replace_line(SAMPLE, 4, "0 0 -10")
    with caplog.at_level(logging.WARNING, logger="whitted"):
        parse_scene(text)
    assert caplog.text == ""


def test_other_field_of_view_is_reported(caplog):
    text = replace_line(SAMPLE, 6, "45")
    with caplog.at_level(logging.WARNING, logger="whitted"):
        parse_scene(text)
    assert "field of view 45" in caplog.text
