# src/a11y_auditor/utils/path_utils.py
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class PathUtils:
    """
    A central utility for reliably retrieving package and user paths.
    """

    @staticmethod
    def get_package_root() -> Path:
        """Directory of the installed a11y_auditor package."""
        return Path(__file__).resolve().parent.parent

    @staticmethod
    def get_settings_file() -> Path:
        return PathUtils.get_package_root() / "settings.json"

    @staticmethod
    def get_user_config_dir() -> Path:
        """
        Returns the path to the user's config directory.
        (e.g., ~/.a11y_auditor/)
        """
        return Path.home() / ".a11y_auditor"

    @staticmethod
    def get_user_settings_file() -> Path:
        """Optional per-user overrides, merged over the packaged defaults."""
        return PathUtils.get_user_config_dir() / "settings.json"
