"""
Configuration
==============
Loads ``configs/settings.yaml`` and turns the ``worker`` section into an
explicit ``WorkerConfig`` that describes how to launch the recognition
worker process.

Design notes:
    - Settings are read with ``yaml.safe_load``.  A missing or broken file
      is not fatal: every consumer has defaults, so an empty dict is
      returned and a warning logged.
    - The worker's runtime environment (PATH additions, PYTHONPATH, OCR
      tuning variables) is computed as a plain dict and handed to the child
      process only.  ``os.environ`` of the calling process is never mutated.
    - A few environment variables override the file:
        BASE_DIR     -- root directory scanned for ``_images`` folders
        PYTHON_PATH  -- interpreter used to run the worker
        IN_DOCKER    -- force the container search paths
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import yaml

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SETTINGS_PATH = PROJECT_ROOT / "configs" / "settings.yaml"

DEFAULT_LANGUAGES = ["en", "fr"]
DEFAULT_SCAN_DIRS = ["docs", "releasenotes"]
DEFAULT_OUTPUT_FILE = "ocr_results.json"
DEFAULT_QUERY_RESULTS_FILE = "~/query_results.json"
WORKER_MODULE = "ocr_search.worker"

# Search paths prepended to PATH for the worker, matching the layouts the
# tool is usually deployed in.
DOCKER_SEARCH_PATHS = ["/usr/local/bin"]
VENV_SEARCH_PATHS = ["~/myenv/bin"]
DOCKERENV_MARKER = "/.dockerenv"


def load_settings(path: Optional[str] = None) -> dict:
    """
    Load settings from ``configs/settings.yaml`` (or *path*).

    Returns:
        The parsed YAML as a dict, or empty dict if file not found.
    """
    settings_path = Path(path) if path else SETTINGS_PATH
    if not settings_path.exists():
        logger.warning("Settings file not found: %s", settings_path)
        return {}
    try:
        with open(settings_path, "r") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Failed to read settings: %s", exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Settings file %s is not a mapping; ignoring it", settings_path)
        return {}
    return data


def section(settings: Mapping, name: str) -> dict:
    """Return ``settings[name]`` as a dict (empty when absent or null)."""
    value = settings.get(name) or {}
    return dict(value) if isinstance(value, Mapping) else {}


def in_docker(environ: Optional[Mapping[str, str]] = None) -> bool:
    """True when running inside a container (``IN_DOCKER`` or ``/.dockerenv``)."""
    environ = os.environ if environ is None else environ
    return bool(environ.get("IN_DOCKER")) or os.path.exists(DOCKERENV_MARKER)


def resolve_base_dir(settings: Mapping, environ: Optional[Mapping[str, str]] = None) -> Path:
    """Directory scanned for images: ``BASE_DIR`` env, then ``paths.base_dir``, then cwd."""
    environ = os.environ if environ is None else environ
    raw = environ.get("BASE_DIR") or section(settings, "paths").get("base_dir") or "."
    return Path(raw).expanduser().resolve()


@dataclass
class WorkerConfig:
    """
    How to launch the recognition worker process.

    Attributes:
        executable_path    : interpreter or binary to run.
        worker_args        : arguments after the executable.
        extra_search_paths : directories prepended to the child's PATH.
        runtime_environment: extra variables for the child (PYTHONPATH, ...).
        request_timeout    : seconds to wait for one response (None = forever).
        inherit_environment: start from the parent's environment.
    """

    executable_path: str = sys.executable
    worker_args: List[str] = field(default_factory=lambda: ["-m", WORKER_MODULE])
    extra_search_paths: List[str] = field(default_factory=list)
    runtime_environment: Dict[str, str] = field(default_factory=dict)
    request_timeout: Optional[float] = None
    inherit_environment: bool = True

    def command(self) -> List[str]:
        return [self.executable_path, *self.worker_args]

    def build_environment(self, base: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """
        Compute the child process environment.

        ``extra_search_paths`` are prepended to PATH; ``runtime_environment``
        entries override inherited values.
        """
        if base is None:
            base = os.environ if self.inherit_environment else {}
        env = dict(base)
        env.update(self.runtime_environment)
        if self.extra_search_paths:
            prefix = os.pathsep.join(str(Path(p).expanduser()) for p in self.extra_search_paths)
            current = env.get("PATH", "")
            env["PATH"] = prefix + (os.pathsep + current if current else "")
        return env

    @classmethod
    def from_settings(
        cls,
        settings: Mapping,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "WorkerConfig":
        """
        Build a config from the ``worker`` and ``ocr`` settings sections.

        The interpreter comes from ``PYTHON_PATH``, then ``worker.python``,
        then the current interpreter.  PATH additions follow the deployment
        layout unless ``worker.extra_search_paths`` is given.
        """
        environ = os.environ if environ is None else environ
        worker = section(settings, "worker")
        ocr = section(settings, "ocr")

        executable = environ.get("PYTHON_PATH") or worker.get("python") or sys.executable

        search_paths = worker.get("extra_search_paths")
        if search_paths is None:
            search_paths = DOCKER_SEARCH_PATHS if in_docker(environ) else VENV_SEARCH_PATHS

        # The worker module must be importable from a plain checkout too.
        python_path = [str(PROJECT_ROOT)]
        if worker.get("python_path"):
            python_path.append(str(Path(worker["python_path"]).expanduser()))
        runtime_env = {"PYTHONPATH": os.pathsep.join(python_path), "PYTHONUNBUFFERED": "1"}

        if "preprocess" in ocr:
            runtime_env["OCR_SEARCH_PREPROCESS"] = "1" if ocr["preprocess"] else "0"
        if "confidence_threshold" in ocr:
            runtime_env["OCR_SEARCH_CONFIDENCE_THRESHOLD"] = str(ocr["confidence_threshold"])
        if "psm" in ocr:
            runtime_env["OCR_SEARCH_PSM"] = str(ocr["psm"])

        timeout = worker.get("request_timeout")
        return cls(
            executable_path=str(executable),
            extra_search_paths=[str(p) for p in search_paths],
            runtime_environment=runtime_env,
            request_timeout=float(timeout) if timeout else None,
        )


def worker_languages(settings: Mapping) -> List[str]:
    """Languages passed to ``init`` (``worker.languages``, default en + fr)."""
    langs = section(settings, "worker").get("languages") or DEFAULT_LANGUAGES
    return [str(lang) for lang in langs]
