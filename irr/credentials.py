from __future__ import annotations

import os
import shutil
from typing import Mapping

from dotenv import dotenv_values

REQUIRED_ENV_KEYS = ("MYSQL_ROOT_PASSWORD", "DB_USERNAME", "DB_PASSWORD", "KAFKA_BROKER")


class CredentialProvider:
    """Look up secrets at call time.

    The process environment wins over the env file. Values are never cached,
    so an edited env file is picked up on the next lookup.
    """

    def __init__(self, env_file: str | None = None, environ: Mapping[str, str] | None = None):
        self.env_file = env_file
        self._environ = os.environ if environ is None else environ

    def get(self, key: str) -> str | None:
        value = self._environ.get(key)
        if value:
            return value
        if self.env_file and os.path.isfile(self.env_file):
            return dotenv_values(self.env_file).get(key) or None
        return None


def ensure_env_file(env_file: str, example: str) -> bool:
    """Make sure the compose env file exists.

    Returns True when it had to be created from the example template.
    Raises FileNotFoundError when neither file exists.
    """
    if os.path.isfile(env_file):
        return False
    if not os.path.isfile(example):
        keys = ", ".join(REQUIRED_ENV_KEYS)
        raise FileNotFoundError(f"{env_file} not found and no {example} to copy from. Create it with: {keys}")
    shutil.copyfile(example, env_file)
    return True
