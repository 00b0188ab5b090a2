"""
Recipient and sender resolution against a project's contacts.

Lookup order: exact full name, then role synonyms, then partial name match.
"""

from ..models.project import Contact

# Canonical role -> words that refer to it. Checked in this order.
ROLE_SYNONYMS: dict[str, tuple[str, ...]] = {
    'Homeowner': ('homeowner', 'customer', 'client', 'owner'),
    'Roofer': ('roofer', 'contractor', 'installer'),
    'Project Manager': ('bidlist', 'project manager', 'manager', 'pm'),
    'Solar Rep': ('solar', 'rep', 'sales'),
}


def canonical_role(text: str | None) -> str | None:
    """Map free text (a role name or a phrase containing one) to a canonical role."""
    if not text:
        return None
    lowered = text.strip().lower()
    words = set(lowered.replace('_', ' ').split())
    for role, synonyms in ROLE_SYNONYMS.items():
        for synonym in synonyms:
            # Short synonyms must match a whole word
            if (len(synonym) <= 3 and synonym in words) or (len(synonym) > 3 and synonym in lowered):
                return role
    return None


def resolve_contact(query: str | None, contacts: list[Contact]) -> Contact | None:
    """
    Find the contact a model-supplied name or role refers to.

    Args:
        query: Name or role text, e.g. "Jane Doe" or "the homeowner"
        contacts: Contacts linked to the project

    Returns:
        Matching contact, or None
    """
    if not query or not contacts:
        return None
    needle = query.strip().lower()

    for contact in contacts:
        if contact.full_name and contact.full_name.strip().lower() == needle:
            return contact

    role = canonical_role(needle)
    if role is not None:
        for contact in contacts:
            if canonical_role(contact.role) == role:
                return contact

    for contact in contacts:
        name = (contact.full_name or '').strip().lower()
        if name and (needle in name or name in needle):
            return contact

    return None


def default_sender(contacts: list[Contact]) -> Contact | None:
    """The project manager speaks for the company unless told otherwise."""
    for contact in contacts:
        if canonical_role(contact.role) == 'Project Manager':
            return contact
    return None
