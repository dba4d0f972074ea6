"""Version helpers for package and CLI metadata."""

from importlib.metadata import version

PACKAGE_NAME = "draft-guard"
PACKAGE_VERSION: str = version(PACKAGE_NAME)
