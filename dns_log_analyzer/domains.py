"""
Domain helpers - cleaning raw query names and boiling them down to a base domain.

Pure string work, nothing here ever touches the network.
"""

REVERSE_ZONES = (".in-addr.arpa", ".ip6.arpa")


def clean_query(raw: str | None) -> str | None:
    """Lower-cases a query name and drops the trailing root dot. Empty -> None."""
    if raw is None:
        return None
    query = raw.strip().rstrip(".").lower()
    return query or None


def extract_base_domain(query: str | None) -> str | None:
    """
    Reduces a query name to its base domain.

    'a.b.example.com'        -> 'example.com'
    '44.8.0.10.in-addr.arpa' -> '10.in-addr.arpa'
    'localhost'              -> 'localhost'

    Reverse lookups get their own pseudo-domain bucket: the label sitting next
    to the arpa zone plus the zone itself, so PTR chatter doesn't all collapse
    into 'in-addr.arpa' and doesn't pretend to be a real site either.
    """
    if not query:
        return None

    for zone in REVERSE_ZONES:
        if query.endswith(zone):
            head = query[: -len(zone)]
            if not head:
                return query
            return f"{head.split('.')[-1]}{zone}"

    labels = query.split(".")
    if len(labels) >= 2:
        return ".".join(labels[-2:])

    return query
