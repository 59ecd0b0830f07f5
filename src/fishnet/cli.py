from __future__ import annotations

import argparse
from pathlib import Path


def _add_analyze_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", help="Path to TOML/YAML/JSON config file")
    parser.add_argument("--image", required=True, help="Image file or directory of images")

    parser.add_argument("--detector-path", help="Detector model path (.tflite/.onnx)")
    parser.add_argument("--classifier-path", help="Multi-head classifier model path")
    parser.add_argument("--species-path", help="Species classifier model path (split mode)")
    parser.add_argument("--disease-path", help="Disease classifier model path (split mode)")
    parser.add_argument(
        "--classifier-mode",
        choices=["split", "multihead"],
        help="Separate species/disease models or one multi-head classifier",
    )
    parser.add_argument("--seed", type=int, help="Seed for confidence calibration")

    parser.add_argument("--event-file", help="Append per-image JSON results to file")
    parser.add_argument("--no-event-stdout", action="store_true", help="Disable per-image JSON results on stdout")
    parser.add_argument("--annotate-dir", help="Write annotated copies of each image to this directory")

    parser.add_argument("--json-logs", action="store_true", help="Emit structured JSON logs")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Runtime log level")
    parser.add_argument("--prometheus", action="store_true", help="Enable Prometheus metrics endpoint")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fishnet",
        description="FishNet fish species, freshness and disease analysis",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", help="Analyze one image or a directory of images")
    _add_analyze_args(analyze)

    doctor = subparsers.add_parser("doctor", help="Probe runtime modules and configured models")
    doctor.add_argument("--config", help="Optional config file to evaluate")
    doctor.add_argument("--json", action="store_true", help="Emit JSON report")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    repo_root = Path(__file__).resolve().parents[2]

    if args.command == "analyze":
        from fishnet.commands.analyze import run_analyze

        return run_analyze(args, repo_root)
    if args.command == "doctor":
        from fishnet.commands.doctor import run_doctor

        return run_doctor(args, repo_root)

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
