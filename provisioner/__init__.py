"""
MariaDB account provisioner.

Creates isolated database/user pairs with generated credentials and an
auditable record of every created account.
"""

__version__ = "1.0.0"
