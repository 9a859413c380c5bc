"""
Migration: otps_contact_v2
Created: 2026-10-18

Description:
    Consolidates the OTP contact fields.

    Before:
        otps/{_id}
        ├── type: "email" | "phone"
        ├── email / phoneNumber: "..."
        └── purpose: "registration" | "verification" | "password-reset" | ...

    After:
        otps/{_id}
        ├── contact: "foo@bar.com"         (email lowercased, both trimmed)
        ├── contactType: "email" | "phone"
        ├── purpose: "signup" | "login"
        ├── attempts: 0 when missing or not a count
        └── verified: false when missing or not a bool

    The indexes built on the old fields are dropped first, then the contact
    lookup index and the expiresAt TTL index are built. Documents whose
    contact channel cannot be determined are left untouched and reported.
"""

from pymongo import ASCENDING
from pymongo.database import Database

from docmigrate.engine.backfill import DefaultsBackfiller, bool_field, count_field
from docmigrate.engine.batch import DEFAULT_BATCH_SIZE
from docmigrate.engine.classifier import FieldClassifier
from docmigrate.engine.indexes import IndexSpec
from docmigrate.engine.normalizer import ValueNormalizer
from docmigrate.engine.plan import SchemaMigration
from docmigrate.engine.remapper import EnumRemapper
from docmigrate.engine.runner import migrate_collection
from docmigrate.schemas.models import MigrationReport

COLLECTION = "otps"

PURPOSE_MAP = {
    "registration": "signup",
    "verification": "signup",
    "password-reset": "login",
}
PURPOSES = ("signup", "login")
DEFAULT_PURPOSE = "login"

OBSOLETE_FIELDS = ("type", "email", "phoneNumber")
OBSOLETE_INDEXES = ("email_type_purpose", "phone_type_purpose", "ttl_index")
NEW_INDEXES = (
    IndexSpec("contact_1_purpose_1_verified_1", (("contact", ASCENDING), ("purpose", ASCENDING), ("verified", ASCENDING))),
    IndexSpec("expiresAt_1", (("expiresAt", ASCENDING),), expire_after_seconds=0),
)


def build_plan() -> SchemaMigration:
    return SchemaMigration(
        name="otps_contact_v2",
        classifier=FieldClassifier(
            current_field="contactType",
            legacy_fields=("type",),
            value_fields=("contact", "email", "phoneNumber"),
            phone_fields=("phoneNumber",),
        ),
        normalizer=ValueNormalizer(),
        discriminant_field="contactType",
        value_field="contact",
        enums={"purpose": EnumRemapper(PURPOSE_MAP, PURPOSES, DEFAULT_PURPOSE)},
        backfiller=DefaultsBackfiller([count_field("attempts"), bool_field("verified")]),
        obsolete_fields=OBSOLETE_FIELDS,
        obsolete_indexes=OBSOLETE_INDEXES,
        new_indexes=NEW_INDEXES,
    )


def upgrade(
    db: Database,
    collection_name: str = COLLECTION,
    batch_size: int = DEFAULT_BATCH_SIZE,
    dry_run: bool = False,
) -> MigrationReport:
    """
    Migrate OTP documents to the contact/contactType schema.

    Args:
        db: pymongo Database handle
        collection_name: Collection to migrate
        batch_size: Pending updates per bulk write
        dry_run: Scan and report without writing
    """
    return migrate_collection(db, collection_name, build_plan(), batch_size=batch_size, dry_run=dry_run)
