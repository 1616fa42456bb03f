"""Portainer management API client"""

from portainer_backup.portainer.client import PortainerClient
from portainer_backup.portainer.models import ServerStatus, Stack, StackFile

__all__ = [
    "PortainerClient",
    "ServerStatus",
    "Stack",
    "StackFile",
]
