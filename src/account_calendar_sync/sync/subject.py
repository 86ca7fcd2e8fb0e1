"""
Destination-visible subjects for copied occurrences.
"""

SEPARATOR = " : "


def _short_subject(subject: str, limit: int) -> str:
    """First two words of subject run together, cut to limit characters."""
    return "".join(subject.split()[:2])[:limit]


def account_tag(display_name: str) -> str:
    """Short origin tag: two domain letters after "@", else the first four characters."""
    at = display_name.find("@")
    if at >= 0:
        return display_name[at + 1 : at + 3].upper()
    return display_name[:4].upper()


def transform_subject(subject: str, display_name: str, abbreviate: bool = False) -> str:
    """
    Prefix subject with the source account it was copied from.

    Plain form is ``"<display name> : <subject>"``.  The abbreviated form
    uses account_tag() and a squeezed subject of at most 6 characters for
    e-mail style names, or 5 for anything else::

        transform_subject("Weekly Standup Meeting", "alice@example.com", True)
        → "EX : Weekly"
        transform_subject("Team sync", "Personal", True)
        → "PERS : Teams"
    """
    subject = subject or ""
    if not abbreviate:
        return f"{display_name}{SEPARATOR}{subject}"
    limit = 6 if "@" in display_name else 5
    return f"{account_tag(display_name)}{SEPARATOR}{_short_subject(subject, limit)}"
