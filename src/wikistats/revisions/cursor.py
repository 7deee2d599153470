"""Opaque pagination cursor for resuming a revision fetch.

MediaWiki continues a ``prop=revisions`` listing with two values: the
``rvcontinue`` position (``"<timestamp>|<revid>"``) and the generic
``continue`` marker.  Callers never see them directly; they get one
URL-safe, unpadded base64 string and hand it back verbatim.

Only this module builds or reads cursors.  Decoding never raises: anything
unreadable means "start from the newest revision".
"""

from __future__ import annotations

import base64
import binascii
import logging
import urllib.parse
from dataclasses import dataclass

from wikistats.revisions.config import CONTINUE_SENTINEL

logger = logging.getLogger(__name__)

_TOKEN_KEYS: tuple[str, ...] = ("continuationToken", "rvcontinue")
_PARAM_KEYS: tuple[str, ...] = ("continuationParam", "continue")


@dataclass(frozen=True)
class Cursor:
    """Decoded continuation state.

    Attributes:
        continue_token: ``rvcontinue`` value, or ``None`` for "from the newest".
        continue_param: ``continue`` value sent alongside the token.
    """

    continue_token: str | None = None
    continue_param: str | None = None


def encode_cursor(continue_token: str | None, continue_param: str | None = None) -> str | None:
    """Serialize a continuation pair into an opaque cursor.

    Args:
        continue_token: ``rvcontinue`` from the last page fetched.
        continue_param: ``continue`` from the same page; the ``"||"``
            sentinel is used when missing.

    Returns:
        The cursor string, or ``None`` when *continue_token* is empty.
    """
    if continue_token is None or not continue_token.strip():
        return None
    param = continue_param if continue_param is not None else CONTINUE_SENTINEL
    raw = urllib.parse.urlencode({"continuationToken": continue_token, "continuationParam": param})
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


def decode_cursor(cursor: str | None) -> Cursor:
    """Turn a cursor string back into its continuation pair.

    Cursors issued by earlier deployments are also accepted: payloads that
    use the upstream key names (``rvcontinue``/``continue``), and bare
    ``rvcontinue`` values (recognised by their ``|``) that were never
    base64-encoded.

    Args:
        cursor: Value previously returned as ``olderCursor``, or ``None``.

    Returns:
        The decoded :class:`Cursor`; an empty one when *cursor* is blank or
        unusable.
    """
    if cursor is None or not cursor.strip():
        return Cursor()
    cursor = cursor.strip()

    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        decoded = base64.b64decode(padded, altchars=b"-_", validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        if "|" in cursor:
            logger.debug("cursor: treating undecodable cursor as a raw rvcontinue token")
            return Cursor(cursor, CONTINUE_SENTINEL)
        logger.debug("cursor: ignoring undecodable cursor %r", cursor)
        return Cursor()

    fields = dict(urllib.parse.parse_qsl(decoded, keep_blank_values=True))

    token = next((fields[k] for k in _TOKEN_KEYS if k in fields), None)
    param = next((fields[k] for k in _PARAM_KEYS if k in fields), None)
    if not token:
        return Cursor()
    return Cursor(token, param)
