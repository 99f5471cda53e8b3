from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

from dotenv import dotenv_values

LOG = logging.getLogger(__name__)

DEFAULT_ENV_FILE = "/.env"
DOTENV_PREFIX = "DOTENV_"


def read_env_file(path: Union[str, Path]) -> Dict[str, str]:
    """Parse a ``KEY=VALUE`` file and return its entries under the ``DOTENV_`` namespace.

    Comment lines, blank lines and keys without a value are skipped. A missing
    file yields an empty mapping.
    """
    env_path = Path(path)
    if not env_path.is_file():
        LOG.info("No env file at %s; skipping", env_path)
        return {}

    LOG.info("Found env file %s; exporting variables", env_path)
    entries: Dict[str, str] = {}
    for key, value in dotenv_values(env_path, interpolate=False).items():
        if not key or value is None:
            continue
        entries[f"{DOTENV_PREFIX}{key}"] = value
    return entries


def build_pool(
    env_file: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """Return the lookup pool: native environment plus ``DOTENV_*`` entries.

    Dotenv entries never replace a variable already present in the native
    environment, including a natively exported ``DOTENV_*`` name.
    """
    pool = dict(os.environ if environ is None else environ)
    path = env_file if env_file is not None else pool.get("ENV_FILE", DEFAULT_ENV_FILE)
    for key, value in read_env_file(path).items():
        pool.setdefault(key, value)
    return pool
