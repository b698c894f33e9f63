# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database migrations package.

Migrations are plain Alembic revision modules under versions/, applied
programmatically by runner.run_migrations().
"""
