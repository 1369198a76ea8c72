"""Configuration module for loading and managing indexer settings"""
from typing import Dict, Any, Optional
from .lib.load_settings_conf import load_settings_conf, validate_settings, SettingsError, DEFAULTS

__all__ = ['get_settings', 'load_settings_conf', 'validate_settings', 'SettingsError', 'DEFAULTS']

_settings: Optional[Dict[str, Any]] = None


def get_settings(settings_path: Optional[str] = None, reload: bool = False) -> Dict[str, Any]:
    """Return the loaded settings, reading settings.conf on first use.

    Args:
        settings_path: Optional directory containing settings.conf. Defaults
                       to the current directory.
        reload: Force a re-read of the settings file

    Returns:
        Dictionary of validated settings

    Raises:
        SettingsError: If settings.conf is invalid
    """
    global _settings

    if _settings is None or reload or settings_path is not None:
        try:
            _settings = load_settings_conf(settings_path or ".")
        except SettingsError as e:
            # Re-raise the error but provide more context
            raise SettingsError(
                f"Configuration Error\n"
                "=================\n\n"
                f"{str(e)}\n\n"
                "Please ensure settings.conf is properly configured.\n"
                "See examples/settings.conf.example for the available settings."
            ) from e

    return _settings
