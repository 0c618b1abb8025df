# -*- coding: utf-8 -*-

import json
import logging

import yaml


#=======================================================================
# Logging Utilities
#=======================================================================

def setup_logging(verbose=False, quiet=False):
    """Configure root logging for scripts and notebooks using the package."""
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True  # Override any existing configuration
    )

    # Reduce noise from external libraries in non-verbose mode
    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)


def mask_token(token, visible=4):
    """
    Mask a session token for logging, keeping only its last characters.

    Args:
        token (str): The token to mask.
        visible (int): Number of trailing characters left visible.

    Returns:
        str: The masked token, e.g. '****abcd'.
    """
    if not token:
        return ""
    token = str(token)
    if len(token) <= visible:
        return "*" * len(token)
    return "*" * 4 + token[-visible:]


#=======================================================================
# File Utilities
#=======================================================================

def read_yaml(path):
    with open(path, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f)


def write_yaml(data, path):
    with open(path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(data, f, sort_keys=False)


def write_json(data, path, indent=4, encoding="utf-8"):
    """
    Writes data to a JSON file.

    Args:
        data (dict or list): Data to write.
        path (str): Destination file path.
        indent (int): Indentation level for formatting.
    """
    with open(path, 'w', encoding=encoding) as f:
        json.dump(data, f, indent=indent, default=str)


def read_jsonl(path):
    """
    Read a JSON Lines file and return a list of dictionaries.
    Blank lines are skipped.

    Args:
        path (str): Path to the input file.

    Returns:
        list: List of dictionaries read from the file.
    """
    with open(path, 'r', encoding='utf-8') as f:
        return [json.loads(line) for line in f if line.strip()]
