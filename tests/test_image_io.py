import numpy as np
from matplotlib import image as mpimg

from whitted.image_io import quantize, write_image, write_ppm


def test_quantize_truncates_and_clamps():
    image = np.array([[[0.0, 0.5, 1.0], [1.5, -1.0, np.nan]]])
    assert quantize(image).tolist() == [[[0, 127, 255], [255, 0, 255]]]


def test_write_ppm(tmp_path):
    image = np.zeros((2, 3, 3))
    image[0, 0] = [1.0, 0.0, 0.0]
    image[1, 2] = [0.0, 0.0, 1.0]
    path = tmp_path / "out.ppm"

    write_ppm(path, image)

    data = path.read_bytes()
    header = b"P6\n3 2\n255\n"
    assert data.startswith(header)
    pixels = data[len(header):]
    assert len(pixels) == 2 * 3 * 3
    assert pixels[:3] == bytes([255, 0, 0])
    assert pixels[-3:] == bytes([0, 0, 255])


def test_write_image_dispatches_on_suffix(tmp_path):
    image = np.full((4, 5, 3), 0.5)

    write_image(tmp_path / "out.PPM", image)
    write_image(tmp_path / "out.png", image)

    assert (tmp_path / "out.PPM").read_bytes().startswith(b"P6\n5 4\n255\n")
    assert mpimg.imread(tmp_path / "out.png").shape[:2] == (4, 5)
