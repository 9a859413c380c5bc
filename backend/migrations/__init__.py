# MongoDB Migrations
#
# Versioned scripts that move a collection to a new schema version.
# Each m_*.py module defines COLLECTION and an upgrade() function that
# returns a MigrationReport.
#
# Usage:
#   python -m migrations.runner migrate [--dry-run]
#   python -m migrations.runner status
#   python -m migrations.runner create <name>
