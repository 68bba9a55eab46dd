"""Command line entry point: generate a world and write its export as JSON."""

import argparse
import sys

import structlog

from .config import settings
from .core.export import export_world, summarize_world
from .core.heightmap_generator import Falloff, HeightmapConfig
from .core.hydrology import HydrologyOptions
from .core.kingdoms import KingdomOptions
from .core.noise import NoiseStyle
from .core.point_sampler import Distribution
from .core.settlements import SettlementOptions
from .core.world import GenerationSession
from .utils.logging import configure_logging

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate a procedural world")
    parser.add_argument("--cells", type=int, default=settings.default_cells,
                        help="Number of cells")
    parser.add_argument("--seed", default=settings.default_seed, help="World seed")
    parser.add_argument("--width", type=float, default=settings.default_width)
    parser.add_argument("--height", type=float, default=settings.default_height)
    parser.add_argument("--distribution", choices=[d.value for d in Distribution],
                        default=Distribution.JITTERED.value)
    parser.add_argument("--style", choices=[s.value for s in NoiseStyle],
                        default=NoiseStyle.FBM.value, help="Elevation noise style")
    parser.add_argument("--falloff", choices=[f.value for f in Falloff],
                        default=Falloff.RADIAL.value)
    parser.add_argument("--sea-level", type=float, default=0.4,
                        help="Fraction of the noise range under water")
    parser.add_argument("--kingdoms", type=int, default=12, help="Target kingdom count")
    parser.add_argument("--road-density", type=int, default=5, choices=range(11))
    parser.add_argument("--lakes", action="store_true", help="Form lakes in closed basins")
    parser.add_argument("--summary", action="store_true",
                        help="Print layer counts instead of the full export")
    parser.add_argument("--output", "-o", help="Write JSON here instead of stdout")
    parser.add_argument("--log-level", default=None)
    parser.add_argument("--log-format", choices=["json", "console"], default="console")
    return parser


def main(argv=None) -> int:
    """Main function."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, args.log_format)

    session = GenerationSession(width=args.width, height=args.height, seed=args.seed)
    state = session.generate_world(
        count=args.cells,
        seed=args.seed,
        distribution=Distribution(args.distribution),
        heightmap=HeightmapConfig(seed=args.seed, style=NoiseStyle(args.style),
                                  falloff=Falloff(args.falloff), sea_level=args.sea_level),
        hydrology=HydrologyOptions(enable_lakes=args.lakes),
        kingdoms=KingdomOptions(num_kingdoms=args.kingdoms),
        settlements=SettlementOptions(road_density=args.road_density),
    )

    model = summarize_world(state) if args.summary else export_world(state)
    payload = model.model_dump_json(indent=2)
    if args.output:
        with open(args.output, "w") as f:
            f.write(payload)
        logger.info("Export written", path=args.output, cells=state.n_cells)
    else:
        sys.stdout.write(payload + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
