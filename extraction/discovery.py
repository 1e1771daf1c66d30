"""
Java source file discovery.

This is the file-discovery collaborator used by the command line: it walks a
repository checkout and filters by extension. The batch runner itself never
touches the filesystem beyond reading the paths it is given.
"""

import logging
import os
from typing import List

from extraction.config import EXCLUDED_DIRECTORIES, JAVA_EXTENSIONS

logger = logging.getLogger(__name__)


def discover_java_files(directory: str) -> List[str]:
    """Recursively discover all Java source files in a directory.

    Args:
        directory: Root directory to search.

    Returns:
        Sorted list of absolute paths to Java files.

    Raises:
        FileNotFoundError: If the directory does not exist.

    Example:
        >>> files = discover_java_files("/path/to/repo")
        >>> len(files)
        42
    """
    directory = os.path.abspath(directory)
    if not os.path.isdir(directory):
        raise FileNotFoundError(f"Directory not found: {directory}")

    logger.info("Discovering Java files in %s", directory)

    java_files = []
    for root, dirs, files in os.walk(directory):
        # Skip hidden directories and common build/cache directories
        dirs[:] = [
            d for d in dirs
            if not d.startswith(".") and d not in EXCLUDED_DIRECTORIES
        ]
        for file in files:
            if os.path.splitext(file)[1] in JAVA_EXTENSIONS:
                java_files.append(os.path.join(root, file))

    logger.info("Found %d Java files", len(java_files))
    return sorted(java_files)
