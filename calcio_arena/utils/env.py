"""Minimal .env support for local runs."""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

ENV_FILE_VARIABLE = "CALCIO_ENV_FILE"


def default_env_path() -> Path:
  """`CALCIO_ENV_FILE` when set, otherwise `.env` at the repository root."""
  configured = os.getenv(ENV_FILE_VARIABLE)
  if configured and configured.strip():
    return Path(configured.strip()).expanduser()
  return Path(__file__).resolve().parents[2] / ".env"


def parse_env_lines(lines: Iterable[str]) -> dict[str, str]:
  """Parse `KEY=value` lines, accepting `export`, quotes and trailing ` #` comments."""
  values: dict[str, str] = {}
  for raw_line in lines:
    line = raw_line.strip()
    if not line or line.startswith("#"):
      continue

    key, separator, value = line.removeprefix("export ").partition("=")
    key = key.strip()
    if not separator or not key:
      continue

    value = value.strip()
    if len(value) >= 2 and value[0] in {'"', "'"} and value[-1] == value[0]:
      value = value[1:-1]
    elif " #" in value:
      value = value.split(" #", 1)[0].rstrip()
    values[key] = value
  return values


def load_env_file(path: Path, *, override: bool = False) -> list[str]:
  """Export the file's values into the process environment and return the keys applied."""
  if not path.is_file():
    return []

  applied: list[str] = []
  for key, value in parse_env_lines(path.read_text(encoding="utf-8").splitlines()).items():
    if not override and key in os.environ:
      continue
    os.environ[key] = value
    applied.append(key)
  return applied
