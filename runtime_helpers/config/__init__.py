"""Configuration components."""

from .defaults import HelperDefaults
from .settings import HelperSettings, configure, get_settings, reset_settings

__all__ = ['HelperDefaults', 'HelperSettings', 'configure', 'get_settings', 'reset_settings']
