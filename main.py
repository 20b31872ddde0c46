import argparse
import logging
import sys

from whitted.common import Settings
from whitted.cpu_rt import CpuApp
from whitted.image_io import write_image
from whitted.jit_rt import JitApp
from whitted.logging_config import setup_logging
from whitted.scene_io import SceneParseError, load_scene

import matplotlib.pyplot as plt

logger = logging.getLogger("whitted.main")

DEFAULT_WIDTH = 320
DEFAULT_HEIGHT = 180


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Render spheres and point lights with recursive ray tracing")
    backend = parser.add_mutually_exclusive_group()
    backend.add_argument("--cpu", action="store_true", help="Pure Python renderer (default)")
    backend.add_argument("--jit", action="store_true", help="numba-compiled renderer")

    parser.add_argument("--scene", help="Scene description file, the demo scene is used without one")
    parser.add_argument("--width", type=int, help="Image width")
    parser.add_argument("--height", type=int, help="Image height")
    parser.add_argument("--workers", type=int, default=1, help="Processes (cpu) or threads (jit) to render with")
    parser.add_argument("--output", help="Image file to write, overrides the scene file's output")
    parser.add_argument("--show", action="store_true", help="Display the result with matplotlib")

    parser.add_argument("--log-level", default="INFO", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--log-file", help="Also log to this file")

    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    scene = None
    width, height, output = DEFAULT_WIDTH, DEFAULT_HEIGHT, None
    if args.scene:
        try:
            description = load_scene(args.scene)
        except (SceneParseError, OSError) as e:
            logger.error("Cannot load scene: %s", e)
            return 1
        scene = description.scene
        width, height, output = description.width, description.height, description.output

    try:
        settings = Settings(
            width=args.width if args.width is not None else width,
            height=args.height if args.height is not None else height,
            workers=args.workers,
        )
    except ValueError as e:
        logger.error("%s", e)
        return 1

    if args.jit:
        app = JitApp(settings, scene)
    else:
        app = CpuApp(settings, scene)

    app.run()

    output = args.output or output
    if output:
        try:
            write_image(output, app.image)
        except OSError as e:
            logger.error("Cannot write %s: %s", output, e)
            return 1

    if args.show:
        plt.imshow(app.image)
        plt.show(block=True)

    return 0


if __name__ == "__main__":
    sys.exit(main())
