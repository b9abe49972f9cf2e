import sys

# Argument parsing
from argparse import ArgumentParser, Namespace
from typing import List, Optional

from dotenv import load_dotenv

# Configuration
from iconfig.iconfig import iConfig

from loguru import logger

from gridtiler.data.dataset import DatasetError
from gridtiler.model.models import LayerConfig, TileMeta
from gridtiler.preprocess.tile_builder import build_tiles
from gridtiler.render.scale import SCALE_KINDS


def get_args(argv: Optional[List[str]] = None) -> Namespace:
    """Reads command line arguments and returns a Namespace object with them

    Returns:
        Namespace: Namespace object with the command line arguments
    """
    parser = ArgumentParser(
        prog='gridtiler',
        description='Render a lat/lon gridded variable of a netCDF file into Web Mercator PNG tiles'
    )

    parser.add_argument("file", help="Path to the netCDF file")
    parser.add_argument("variable", help="Name of the 2D variable to render")

    parser.add_argument(
        "-o", "--output",
        action="store",
        dest="output",
        default="tiles",
        help="Root directory of the tile tree (default: tiles)"
    )
    parser.add_argument("--lat", dest="latitude", default="latitude", help="Name of the latitude dimension")
    parser.add_argument("--lon", dest="longitude", default="longitude", help="Name of the longitude dimension")
    parser.add_argument(
        "-l", "--layer",
        dest="layer",
        default=None,
        help="Name of the layer sub-directory (default: the variable name)"
    )
    parser.add_argument("-c", "--colormap", dest="colormap", default=None, help="Colormap name, e.g. RdYlBu_r or viridis")
    parser.add_argument("-s", "--scale", dest="scale", choices=SCALE_KINDS, default="linear", help="Value to colour scale")
    parser.add_argument("--vmin", dest="vmin", type=float, default=None, help="Lower end of the colour range")
    parser.add_argument("--vmax", dest="vmax", type=float, default=None, help="Upper end of the colour range")
    parser.add_argument("--fill-value", dest="fill_value", type=float, default=None, help="Extra missing-value marker")
    parser.add_argument("--min-zoom", dest="min_zoom", type=int, default=None, help="First zoom level")
    parser.add_argument("--max-zoom", dest="max_zoom", type=int, default=None, help="Last zoom level")

    # Add the --nearest option
    parser.add_argument(
        "--nearest",
        action="store_true",
        dest="nearest",
        help="Use nearest-neighbour instead of bilinear sampling"
    )

    parser.add_argument("-w", "--workers", dest="workers", type=int, default=None, help="Number of PNG writer threads")
    parser.add_argument("-q", "--quiet", action="store_true", dest="quiet", help="Only log warnings and errors")

    args = parser.parse_args(argv)

    if args.vmin is not None and args.vmax is not None and args.vmin >= args.vmax:
        parser.error(f"--vmin ({args.vmin}) must be smaller than --vmax ({args.vmax}).")

    return args


def run(config: iConfig, args: Namespace) -> TileMeta:
    """Load the dataset and build the tile tree described by `args`."""
    layer = LayerConfig(
        name=args.layer or args.variable,
        variable=args.variable,
        latitude=args.latitude,
        longitude=args.longitude,
        colormap=args.colormap or config("tiler.colormap", default="RdYlBu_r"),
        scale=args.scale,
        vmin=args.vmin,
        vmax=args.vmax,
        fill_value=args.fill_value,
        resampling="nearest" if args.nearest else "bilinear",
    )
    dataset = layer.load_dataset(args.file)
    renderer = layer.make_renderer(dataset, tile_size=config("tiler.tile_size", default=256))

    return build_tiles(
        config=config,
        renderer=renderer,
        output_dir=args.output,
        layer=layer.name,
        min_zoom=args.min_zoom,
        max_zoom=args.max_zoom,
        max_workers=args.workers or config("tiler.max_workers", default=4),
    )


def main(argv: Optional[List[str]] = None) -> int:
    # Load environment variables
    load_dotenv('.env')

    # Get the command line arguments
    args = get_args(argv)

    if args.quiet:
        logger.remove()
        logger.add(sys.stderr, level="WARNING")

    config = iConfig()

    try:
        meta = run(config, args)
    except DatasetError as e:
        logger.error(f"Cannot load {args.variable} from {args.file}: {e}")
        return 1
    except ValueError as e:
        # unknown colormap, invalid zoom range, ...
        logger.error(f"Cannot build tiles: {e}")
        return 1

    logger.info(f"{meta.tile_count} tiles written for layer '{meta.layer}' (z{meta.min_zoom}-{meta.max_zoom})")
    return 0


# Main
if __name__ == '__main__':
    sys.exit(main())
