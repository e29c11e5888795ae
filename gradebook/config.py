"""
Configuration settings for the gradebook app.

These values can be overridden in Django settings by prefixing with GRADEBOOK_.
For example, to change the attendance threshold:
    GRADEBOOK_ATTENDANCE_THRESHOLD = 80.0

All configuration values are lazily loaded to avoid Django setup issues.
The analytics engine does not read these directly; it receives a
ReportConfig snapshot (see ReportConfig.from_settings).
"""
from dataclasses import dataclass
from typing import Tuple

from .grading import DEFAULT_GRADE_SCALE, DEFAULT_PERFORMANCE_BANDS


def _get_setting(name, default):
    """Get a gradebook setting from Django settings or use default."""
    from django.conf import settings
    return getattr(settings, f'GRADEBOOK_{name}', default)


# Define defaults as constants for direct use when Django settings are not needed
_DEFAULTS = {
    # Grading thresholds
    'ATTENDANCE_THRESHOLD': 75.0,
    'PASS_THRESHOLD': 40.0,

    # Attach dropped-row warnings to report weaknesses
    'REPORT_VIOLATIONS': False,

    # Analytics and display limits
    'TOP_PERFORMERS_LIMIT': 5,

    # Export settings
    'EXPORT_DIR': 'reports',
    'EXPORT_RETENTION_DAYS': 30,
    'EXCEL_HEADER_COLOR': '4F46E5',

    # Data source: 'django' or 'memory'
    'DATA_GATEWAY': 'django',
}


class _ConfigProxy:
    """
    Lazy configuration proxy that loads settings only when accessed.
    This avoids Django setup issues during module import.
    """

    def __getattr__(self, name):
        if name in _DEFAULTS:
            return _get_setting(name, _DEFAULTS[name])
        raise AttributeError(f"Unknown config setting: {name}")


# Module-level proxy object for attribute access
_config = _ConfigProxy()


@dataclass(frozen=True)
class ReportConfig:
    """
    Explicit, immutable configuration handed to the report builder and renderer.
    Defaults match the college's published grading rules.
    """
    attendance_threshold: float = 75.0
    pass_threshold: float = 40.0
    grade_scale: Tuple[Tuple[float, str, str], ...] = DEFAULT_GRADE_SCALE
    performance_bands: Tuple[Tuple[float, str], ...] = DEFAULT_PERFORMANCE_BANDS
    report_violations: bool = False
    excel_header_color: str = '4F46E5'
    top_performers_limit: int = 5

    @classmethod
    def from_settings(cls):
        """Build a ReportConfig from GRADEBOOK_* Django settings."""
        return cls(
            attendance_threshold=float(_config.ATTENDANCE_THRESHOLD),
            pass_threshold=float(_config.PASS_THRESHOLD),
            report_violations=bool(_config.REPORT_VIOLATIONS),
            excel_header_color=_config.EXCEL_HEADER_COLOR,
            top_performers_limit=int(_config.TOP_PERFORMERS_LIMIT),
        )


# For backwards compatibility and direct attribute access
def __getattr__(name):
    """Enable module-level attribute access via the config proxy."""
    return getattr(_config, name)
