from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


def normalize_database_url(url: str) -> str:
    """Coerce hosted-Postgres style URLs into the asyncpg dialect SQLAlchemy expects."""
    url = (url or "").strip()
    if not url:
        return url

    parts = urlsplit(url)
    scheme = parts.scheme

    if scheme in {"postgres", "postgresql", "postgresql+psycopg"}:
        scheme = "postgresql+asyncpg"
    elif scheme != "postgresql+asyncpg":
        return url

    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    if scheme == "postgresql+asyncpg":
        # asyncpg takes ``ssl`` rather than libpq's ``sslmode``
        sslmode = query.pop("sslmode", None)
        if sslmode is not None and "ssl" not in query:
            normalized = sslmode.lower().strip()
            query["ssl"] = "disable" if normalized in {"disable", "allow"} else normalized
        ssl_val = query.get("ssl")
        if ssl_val is not None and ssl_val.lower() in {"1", "true", "yes", "on"}:
            query["ssl"] = "require"

    new_query = urlencode(query, doseq=True)
    return urlunsplit((scheme, parts.netloc, parts.path, new_query, parts.fragment))
