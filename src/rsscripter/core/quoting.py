"""Identifier quoting rules for Redshift SQL.

An identifier is left bare only when it is a standard identifier
(ASCII letter or underscore, then letters, digits, underscores or dollar
signs) and is either qualified (follows a dot) or not a reserved word.
Redshift accepts a reserved word as an identifier when it is quoted
(``"group"``) or qualified (``product.group``).
"""

from __future__ import annotations

import re
from enum import Enum


class QuoteMode(str, Enum):
    """How identifiers are quoted in generated scripts."""

    ALWAYS = "always"
    WHEN_NECESSARY = "when-necessary"


# See http://docs.aws.amazon.com/redshift/latest/dg/r_pg_keywords.html
RESERVED_WORDS = frozenset(
    """
    AES128 AES256 ALL ALLOWOVERWRITE ANALYSE ANALYZE AND ANY ARRAY AS ASC
    AUTHORIZATION BACKUP BETWEEN BINARY BLANKSASNULL BOTH BYTEDICT CASE CAST
    CHECK COLLATE COLUMN CONSTRAINT CREATE CREDENTIALS CROSS CURRENT_DATE
    CURRENT_TIME CURRENT_TIMESTAMP CURRENT_USER CURRENT_USER_ID DEFAULT
    DEFERRABLE DEFLATE DEFRAG DELTA DELTA32K DESC DISABLE DISTINCT DO ELSE
    EMPTYASNULL ENABLE ENCODE ENCRYPT ENCRYPTION END EXCEPT EXPLICIT FALSE FOR
    FOREIGN FREEZE FROM FULL GLOBALDICT256 GLOBALDICT64K GRANT GROUP GZIP
    HAVING IDENTITY IGNORE ILIKE IN INITIALLY INNER INTERSECT INTO IS ISNULL
    JOIN LEADING LEFT LIKE LIMIT LOCALTIME LOCALTIMESTAMP LUN LUNS LZO LZOP
    MINUS MOSTLY13 MOSTLY32 MOSTLY8 NATURAL NEW NOT NOTNULL NULL NULLS OFF
    OFFLINE OFFSET OLD ON ONLY OPEN OR ORDER OUTER OVERLAPS PARALLEL PARTITION
    PERCENT PLACING PRIMARY RAW READRATIO RECOVER REFERENCES REJECTLOG RESORT
    RESTORE RIGHT SELECT SESSION_USER SIMILAR SOME SYSDATE SYSTEM TABLE TAG
    TDES TEXT255 TEXT32K THEN TO TOP TRAILING TRUE TRUNCATECOLUMNS UNION UNIQUE
    USER USING VERBOSE WALLET WHEN WHERE WITH WITHOUT
    """.split()
)

_SAFE_IDENTIFIER = re.compile(r"[A-Za-z_][0-9A-Za-z_$]*")


def is_reserved_word(identifier: str) -> bool:
    """Return True when the identifier is a reserved word (case-insensitive)."""
    return identifier.upper() in RESERVED_WORDS


def is_safe_identifier(identifier: str, *, qualified: bool = False) -> bool:
    """Return True when the identifier can be emitted without quotes."""
    if _SAFE_IDENTIFIER.fullmatch(identifier) is None:
        return False
    return qualified or not is_reserved_word(identifier)


def quote_identifier(
    identifier: str,
    mode: QuoteMode = QuoteMode.ALWAYS,
    *,
    qualified: bool = False,
) -> str:
    """
    Quote an identifier according to the quote mode.

    Quoting wraps the identifier in double quotes and doubles any embedded
    double quote, so the identifier text can always be recovered.
    """
    if mode == QuoteMode.ALWAYS or not is_safe_identifier(identifier, qualified=qualified):
        return '"' + identifier.replace('"', '""') + '"'
    return identifier


def qualified_name(
    parent: str | None,
    local: str,
    mode: QuoteMode = QuoteMode.WHEN_NECESSARY,
) -> str:
    """Return `parent.local` with each part quoted, or just `local` without a parent."""
    if not parent:
        return quote_identifier(local, mode)
    return quote_identifier(parent, mode) + "." + quote_identifier(local, mode, qualified=True)
