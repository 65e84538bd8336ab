"""Redaction helpers for server targets that may embed credentials."""
import re

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

_ODBC_SECRET_KEYS = re.compile(r"(?i)\b(pwd|password)\s*=\s*(\{[^}]*\}|[^;]*)")
_URL_USERINFO = re.compile(r"(://[^:/@]*):([^@]*)@")


def redact_target(target: str) -> str:
    """Removes passwords from a server target before it is logged or reported.

    SQLAlchemy URLs are rendered with the password masked; anything else is treated
    as an ODBC/ADO style ``key=value;`` string and its ``PWD``/``Password`` values
    are replaced. URL-shaped targets SQLAlchemy cannot parse (a non-numeric port,
    for example) fall back to masking the ``user:password@`` part textually.

    Args:
        target (str): The raw connection target.

    Returns:
        str: The target with secrets masked.
    """
    try:
        url = make_url(target)
    except (ArgumentError, ValueError):
        masked = _URL_USERINFO.sub(r"\1:***@", target)
        return _ODBC_SECRET_KEYS.sub(lambda m: f"{m.group(1)}=***", masked)

    rendered = url.render_as_string(hide_password=True)
    if "odbc_connect" in url.query:
        # The password lives in the query string, mask the whole ODBC payload.
        rendered = rendered.split("?", 1)[0] + "?odbc_connect=***"
    return rendered
