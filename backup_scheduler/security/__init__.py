"""Access control for the admin endpoints."""

from backup_scheduler.security.admin import ADMIN_HEADER, is_admin, require_admin

__all__ = ["ADMIN_HEADER", "is_admin", "require_admin"]
