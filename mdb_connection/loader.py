"""
Model module discovery.

``load_models`` imports every ``*_model.py`` file found under the given
directories. Model modules register their models on import (typically via
``create_model`` or ``model``), so loading them fills the registry.
"""

import hashlib
import importlib.util
import logging
import sys
from collections.abc import Iterable
from pathlib import Path
from types import ModuleType

from .connection import get_holder
from .constants import DEFAULT_MODEL_FILE_SUFFIX, LOADER_EXCLUDED_DIRS

logger = logging.getLogger(__name__)

_HOLDER_ATTR = "__mdb_connection_holder__"


def _module_name(path: Path) -> str:
    digest = hashlib.sha1(str(path).encode("utf-8")).hexdigest()[:12]
    return f"_mdb_connection_model_{path.stem}_{digest}"


def _import_file(path: Path) -> ModuleType:
    name = _module_name(path)
    holder = get_holder()
    cached = sys.modules.get(name)
    # Modules loaded before a reset_holder() registered on the old holder
    if cached is not None and getattr(cached, _HOLDER_ATTR, None) is holder:
        return cached

    spec = importlib.util.spec_from_file_location(name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot import model module {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    try:
        spec.loader.exec_module(module)
    except Exception:
        del sys.modules[name]
        raise
    setattr(module, _HOLDER_ATTR, holder)
    return module


def _iter_model_files(
    directory: Path, suffix: str, excludes: set[str], recursive: bool
) -> Iterable[Path]:
    for entry in sorted(directory.iterdir()):
        if entry.is_dir():
            if recursive and not entry.name.startswith(".") and entry.name not in excludes:
                yield from _iter_model_files(entry, suffix, excludes, recursive)
        elif entry.suffix == ".py" and entry.stem.endswith(suffix) and entry.stem != suffix:
            yield entry


def load_models(
    paths: str | Path | Iterable[str | Path] | None = None,
    *,
    cwd: str | Path | None = None,
    suffix: str = DEFAULT_MODEL_FILE_SUFFIX,
    excludes: Iterable[str] | None = None,
    recursive: bool = True,
) -> list[ModuleType]:
    """
    Import model modules found under ``paths``.

    Args:
        paths: Directories to search, relative to ``cwd`` (defaults to ``cwd``)
        cwd: Base directory (defaults to the current working directory)
        suffix: File stem suffix identifying model modules ("_model" matches
            ``user_model.py``)
        excludes: Extra directory names to skip
        recursive: Descend into subdirectories

    Returns:
        The imported modules, in discovery order, without duplicates

    Raises:
        FileNotFoundError: If a search path does not exist
    """
    base = Path(cwd) if cwd else Path.cwd()
    if paths is None:
        paths = [base]
    elif isinstance(paths, (str, Path)):
        paths = [paths]

    skipped = set(LOADER_EXCLUDED_DIRS) | set(excludes or ())
    suffix = suffix or DEFAULT_MODEL_FILE_SUFFIX

    modules: list[ModuleType] = []
    seen: set[Path] = set()
    for raw in paths:
        directory = (base / raw).resolve()
        if not directory.is_dir():
            raise FileNotFoundError(f"Model path '{directory}' is not a directory")
        for file in _iter_model_files(directory, suffix, skipped, recursive):
            if file in seen:
                continue
            seen.add(file)
            modules.append(_import_file(file))
            logger.debug(f"Loaded model module {file}")

    logger.info(f"Loaded {len(modules)} model module(s)")
    return modules
