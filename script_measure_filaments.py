import argparse

from helper_functions.run_config import FilamentConfig
from pipeline.i_session_orchestrator import SessionOrchestrator


def main(argv=None):
    parser = argparse.ArgumentParser(description="Trace and measure filaments attached to segmented bacteria.")
    parser.add_argument("image", help="multi-channel z-stack (bacteria + filament channel)")
    parser.add_argument("--config", help="JSON file with run configuration values", default=None)
    parser.add_argument("--quiet", action="store_true", help="only print the final message")
    args = parser.parse_args(argv)

    config = FilamentConfig.from_json(args.config) if args.config else FilamentConfig()
    orchestrator = SessionOrchestrator(config=config, verbose=not args.quiet)
    result = orchestrator.run(args.image)
    return result


if __name__ == "__main__":
    main()
