"""Shared utilities for the directory backend."""

from bizdirectory.utils.auth import (
    token_required,
    admin_required,
    check_cron_secret,
    cron_or_admin_required,
    can_manage_business,
    create_token
)

__all__ = [
    'token_required',
    'admin_required',
    'check_cron_secret',
    'cron_or_admin_required',
    'can_manage_business',
    'create_token',
]
