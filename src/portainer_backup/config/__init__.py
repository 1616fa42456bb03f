"""Configuration loading for portainer-backup.

Example:
    from portainer_backup.config import EnvLoader

    env = EnvLoader(prefix="PORTAINER_BACKUP_").load()
"""

from portainer_backup.config.env_loader import EnvLoader

__all__ = ["EnvLoader"]
