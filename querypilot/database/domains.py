"""
Domain Profiles

Per-database routing keywords and prompt guidance, kept as data so a new
target schema is a new table entry rather than new prompt prose.
"""

from dataclasses import dataclass

from querypilot.models.query import TargetDatabase


@dataclass(frozen=True)
class DomainProfile:
    """Everything the classifier and prompts need to know about one database."""

    target: TargetDatabase
    label: str
    topics: str
    keywords: tuple[str, ...]
    candidate_tables: tuple[str, ...]
    well_known_tables: tuple[str, ...]
    soft_delete_rule: str
    guidance: tuple[str, ...]


ENTITIES_PROFILE = DomainProfile(
    target=TargetDatabase.ENTITIES,
    label="ENTITIES",
    topics="entities, people, or addresses",
    keywords=(
        "entity",
        "entities",
        "people",
        "person",
        "user",
        "users",
        "address",
        "addresses",
        "bank",
        "iban",
        "swift",
        "bic",
        "role",
        "debtor",
        "creditor",
        "originator",
        "risk",
        "rating",
        "credit limit",
        "param_country",
        "country",
        "countries",
    ),
    candidate_tables=("entity", "people", "address", "entity_property", "param_country"),
    well_known_tables=("entity", "entity_property", "people", "address", "bank"),
    soft_delete_rule=(
        "(entity.is_deleted = 0 OR entity.is_deleted IS NULL); "
        "add deleted_at IS NULL only on tables that have that column."
    ),
    guidance=(
        "Soft delete: prefer (entity.is_deleted = 0 OR entity.is_deleted IS NULL).",
        "entity_property has no deleted_at column; never filter it on deleted_at.",
        "Phones and emails:",
        "  - Prefer entity.computed_phones and entity.computed_emails when listing contact info.",
        "  - Otherwise read entity_property with property_id IN ('phone','mobile','phone_number',"
        "'telephone','email','work_email','personal_email').",
        "  - Join entity_property ON entity_property.entity_id = entity.entity_id. "
        "Never join the phone table by entity_id; it has no such column.",
        "  - To match numbers, strip spaces and dashes with REPLACE before LIKE or REGEXP.",
        "People: match a person by entity.name, or by people.first_name/last_name joined to entity.",
        "Buy table: numeric fields include face_value and purchased; issued is the date. "
        "Filter by date ranges.",
    ),
)

DMS_PROFILE = DomainProfile(
    target=TargetDatabase.DMS,
    label="DMS",
    topics="tickets, notes, or leads",
    keywords=(
        "ticket",
        "tickets",
        "tk",
        "note",
        "notes",
        "tag",
        "tags",
        "reminder",
        "reminders",
        "leads",
        "leads_transactions",
        "leads_notes",
        "leads_tickets",
        "assigned",
        "deadline",
        "status",
        "statuses",
        "report",
        "reports",
    ),
    candidate_tables=("leads_tickets", "leads_notes", "users"),
    well_known_tables=(
        "leads_tickets",
        "leads_transactions",
        "users",
        "global_organisations",
        "email_history",
    ),
    soft_delete_rule=(
        "(t.is_delete = 0 OR t.is_delete IS NULL) AND t.deleted_at IS NULL; "
        "master tickets: master_ticket_crm_id IS NULL."
    ),
    guidance=(
        "Soft delete on tickets: (t.is_delete = 0 OR t.is_delete IS NULL) AND t.deleted_at IS NULL.",
        "Master tickets: master_ticket_crm_id IS NULL.",
        "Ticket codes: 'TK188089' means master_ticket_prefix = 'TK' AND ticket_number = '188089'.",
        "Leads notes have no leads_tickets_id; link leads_tickets and leads_notes "
        "through leads_transactions_id.",
        "email_history stores the body in mail_content; filter by leads_transactions_id "
        "and order by sent_date DESC.",
        "Contact info lives in global_entity_contacts with contact_type IN ('phone','mobile','email'):",
        "  - Organisation contacts: contact_for = 'organisation' (or 'entity') and "
        "entity_id = global_organisations.id.",
        "  - Person or user contacts: contact_for = 'people' or 'user' with entity_id "
        "pointing at that table (often users.id).",
        "  - Apply (is_delete = 0 OR is_delete IS NULL) AND deleted_at IS NULL on it.",
        "Names: global_organisations.organisation_name (and trade_name); "
        "users.first_name and users.last_name.",
        "Joins: leads_tickets t -> users u ON t.assigned_to = u.id; "
        "t -> leads_transactions lt ON t.leads_transactions_id = lt.id (deal metrics live on lt); "
        "t -> global_organisations go ON t.global_organisation_id = go.id.",
    ),
)

DOMAIN_PROFILES: dict[TargetDatabase, DomainProfile] = {
    TargetDatabase.ENTITIES: ENTITIES_PROFILE,
    TargetDatabase.DMS: DMS_PROFILE,
}


def get_profile(target: TargetDatabase | str) -> DomainProfile:
    """Look up the profile for a target; raises ValueError for unknown names."""
    return DOMAIN_PROFILES[TargetDatabase(target)]


def foreign_profiles(target: TargetDatabase) -> list[DomainProfile]:
    """Profiles of every other database, for cross-schema exclusion rules."""
    return [profile for key, profile in DOMAIN_PROFILES.items() if key != target]
