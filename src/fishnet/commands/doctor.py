from __future__ import annotations

import json
import platform
import sys
from pathlib import Path
from typing import Any

from fishnet.config.loader import load_runtime_config, runtime_config_to_dict
from fishnet.inference.models.model_spec import ModelSpec
from fishnet.inference.provider import MULTIHEAD_ROLES, SPLIT_ROLES
from fishnet.inference.selector import describe_backend


def _module_version(name: str) -> str | None:
    try:
        module = __import__(name)
        return getattr(module, "__version__", "installed")
    except Exception:
        return None


def _runtime_doctor(config_path: str | None, repo_root: Path) -> dict[str, Any]:
    config = load_runtime_config(repo_root=repo_root, config_path=config_path)
    roles = MULTIHEAD_ROLES if config.classifier.mode == "multihead" else SPLIT_ROLES

    models: dict[str, Any] = {}
    for role in roles:
        spec = ModelSpec.from_config(role, getattr(config.models, role))
        probe = describe_backend(spec)
        probe["path"] = spec.model_path
        models[role] = probe

    return {
        "platform": {
            "system": platform.system(),
            "release": platform.release(),
            "machine": platform.machine(),
            "python": sys.version.split()[0],
        },
        "classifier_mode": config.classifier.mode,
        "modules": {
            "numpy": _module_version("numpy"),
            "opencv": _module_version("cv2"),
            "onnxruntime": _module_version("onnxruntime"),
            "tflite_runtime": _module_version("tflite_runtime"),
            "tensorflow": _module_version("tensorflow"),
            "dynaconf": _module_version("dynaconf"),
            "prometheus_client": _module_version("prometheus_client"),
        },
        "models": models,
        "config": runtime_config_to_dict(config),
        "ready": all(probe["ok"] for probe in models.values()),
    }


def _print_runtime(report: dict[str, Any]) -> None:
    print("fishnet doctor report")
    print(f"- platform: {report['platform']['system']} {report['platform']['machine']}")
    print(f"- python: {report['platform']['python']}")
    print(f"- classifier mode: {report['classifier_mode']}")
    print("- models:")
    for role, probe in report["models"].items():
        if probe["ok"]:
            print(f"  - {role}: {probe['selected']} ({probe['reason']})")
        else:
            print(f"  - {role}: unavailable ({probe['error']})")
    print("- modules:")
    for name, version in report["modules"].items():
        print(f"  - {name}: {version or 'not installed'}")


def run_doctor(args: Any, repo_root: Path) -> int:
    report = _runtime_doctor(config_path=args.config, repo_root=repo_root)
    if args.json:
        print(json.dumps(report, ensure_ascii=True, indent=2))
    else:
        _print_runtime(report)
    return 0 if report["ready"] else 1
