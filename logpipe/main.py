"""logpipe CLI: run log lines through the configured extraction stages."""

import json
import logging
import sys
from argparse import ArgumentParser

from logpipe.config import load_config, load_pipeline_stages, load_yaml
from logpipe.metrics import Registry
from logpipe.models import entry_to_dict, new_entry
from logpipe.pipeline import Pipeline

logger = logging.getLogger(__name__)


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="logpipe",
        description="Extract fields from JSON log lines.",
    )
    parser.add_argument(
        "files",
        nargs="*",
        help="Log file(s) to process (default: stdin)",
    )
    parser.add_argument(
        "--config",
        help="Path to the YAML pipeline file (default: $CONFIG_PATH or config.yml)",
    )
    return parser


def read_lines(paths: list[str]):
    """Yield lines without trailing newlines from *paths*, or stdin if empty."""
    if not paths:
        for line in sys.stdin:
            yield line.rstrip("\n")
        return
    for path in paths:
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                yield line.rstrip("\n")


def run(args, cfg, registry: Registry) -> int:
    path = args.config or cfg.config_path
    pipeline = Pipeline.from_config(load_pipeline_stages(load_yaml(path)), registry)

    count = 0
    for line in read_lines(args.files):
        if not line:
            continue
        for entry in pipeline.run([new_entry(line)]):
            print(json.dumps(entry_to_dict(entry)))
            count += 1
    return count


def main(argv=None) -> int:
    cfg = load_config()
    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s [LOGPIPE] %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    args = build_parser().parse_args(argv)
    registry = Registry()

    try:
        count = run(args, cfg, registry)
    except (KeyboardInterrupt, BrokenPipeError):
        return 0
    except (OSError, ValueError) as e:
        logger.error("%s", e)
        return 1

    logger.info("Processed %d entries", count)
    if cfg.report_metrics:
        logger.info("Metrics: %s", registry.snapshot())
    return 0


if __name__ == "__main__":
    sys.exit(main())
