# -*- coding: utf-8 -*-

"""
Credentials and .env handling.

The bulk API needs an org instance URL and a session token. Both are read
from the process environment, which can be seeded from .env files in the
working directory. Variables already set in the environment always win over
values found in a file.
"""

import os
import logging
from pathlib import Path
from typing import List, NamedTuple, Optional

import dotenv

INSTANCE_URL_VAR = 'SALESFORCE_INSTANCE_URL'
ACCESS_TOKEN_VAR = 'SALESFORCE_ACCESS_TOKEN'
API_VERSION_VAR = 'SALESFORCE_API_VERSION'

REQUIRED_VARS = (INSTANCE_URL_VAR, ACCESS_TOKEN_VAR)

# Earlier files take precedence: .env.local is meant for per-machine overrides
ENV_FILE_NAMES = ('.env.local', '.env')


class Credentials(NamedTuple):
    instance_url: Optional[str]
    access_token: Optional[str]
    api_version: Optional[str]


def find_env_files(directory=None) -> List[Path]:
    """Return the .env files present in directory (cwd by default), by precedence."""
    directory = Path.cwd() if directory is None else Path(directory)
    return [directory / name for name in ENV_FILE_NAMES if (directory / name).is_file()]


def load_environment_variables(env_file: Optional[str] = None, verbose: bool = False) -> List[Path]:
    """
    Seed the process environment from .env files.

    Args:
        env_file: Specific file to load. If None, every file returned by
            find_env_files() is loaded.
        verbose: Whether to log which files were read.

    Returns:
        The files that were loaded (empty if none was found).
    """
    if env_file:
        candidates = [Path(env_file)]
        if not candidates[0].is_file():
            logging.warning(f"Specified .env file not found: {candidates[0]}")
            return []
    else:
        candidates = find_env_files()

    for env_path in candidates:
        # override=False keeps real environment variables and earlier files
        dotenv.load_dotenv(env_path, override=False)
        if verbose:
            logging.debug(f"Loaded environment from: {env_path}")
    return candidates


def get_credentials() -> Credentials:
    """Read the bulk API credentials from the environment."""
    return Credentials(
        instance_url=os.getenv(INSTANCE_URL_VAR) or None,
        access_token=os.getenv(ACCESS_TOKEN_VAR) or None,
        api_version=os.getenv(API_VERSION_VAR) or None,
    )


def validate_required_env_vars() -> list:
    """
    Returns:
        List of missing credential variables (empty if all present)
    """
    return [var for var in REQUIRED_VARS if not os.getenv(var)]


def setup_environment(verbose: bool = False, env_file: Optional[str] = None) -> bool:
    """
    Load .env files on package import. Missing files and credentials are not
    an error here; create_bulk_client() reports what is missing when called.
    """
    loaded = load_environment_variables(env_file, verbose)
    if verbose:
        if not loaded:
            logging.debug(f"No .env file loaded (looked for {', '.join(ENV_FILE_NAMES)} in {Path.cwd()}).")
        missing = validate_required_env_vars()
        if missing:
            logging.debug(f"Bulk API credentials not set yet: {', '.join(missing)}")
    return True
