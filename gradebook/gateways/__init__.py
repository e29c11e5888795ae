"""
Data gateways for the analytics engine.

Supported gateways:
- django (Django ORM, default)
- memory (in-memory rows, used for tests and previews)
"""

from .base import (
    DataGateway, AttendanceStatus, ATTENDED_STATUSES,
    StudentMeta, SubjectMeta, EnrollmentInfo, AttendanceEvent, MarkEntry,
)
from .memory import InMemoryGateway


def get_gateway(name=None, **kwargs):
    """
    Factory function to get the configured data gateway.

    Args:
        name: Gateway name; defaults to GRADEBOOK_DATA_GATEWAY
        **kwargs: Passed to the gateway constructor

    Returns:
        DataGateway subclass instance
    """
    from .. import config

    gateway_name = (name or config.DATA_GATEWAY).lower()

    if gateway_name == 'django':
        # Imported lazily; needs the app registry
        from .django_orm import DjangoDataGateway
        return DjangoDataGateway(**kwargs)
    if gateway_name == 'memory':
        return InMemoryGateway(**kwargs)

    raise ValueError(f"Unsupported data gateway: {gateway_name}")


__all__ = [
    'DataGateway',
    'InMemoryGateway',
    'AttendanceStatus',
    'ATTENDED_STATUSES',
    'StudentMeta',
    'SubjectMeta',
    'EnrollmentInfo',
    'AttendanceEvent',
    'MarkEntry',
    'get_gateway',
]
