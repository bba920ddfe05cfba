"""
SQL for record set selection and holdings aggregation.

Every query binds the organization's org unit ids as `orgs`. Incremental
queries also bind the window lower bound as `since`. The rolling changed set
uses an open lower bound. Deletes and explicit changed sets are an inclusive
range ending at NOW().
"""

# A copy qualifies when it is live, on a live call number, circulates from
# an in-scope org unit, and hangs off a real bibliographic record.
_QUALIFYING_HOLDINGS = """
    FROM asset.call_number acn
    JOIN asset.copy acp ON acp.call_number = acn.id
    WHERE acp.circ_lib = ANY(%(orgs)s::int[])
      AND NOT acp.deleted
      AND NOT acn.deleted
      AND acn.record > 0
"""

BASE_SET = f"""
    SELECT DISTINCT acn.record AS id
    {_QUALIFYING_HOLDINGS}
    ORDER BY acn.record
"""

CHANGED_SET_ROLLING = f"""
    SELECT DISTINCT acn.record AS id
    {_QUALIFYING_HOLDINGS}
      AND (acp.create_date > %(since)s OR acp.active_date > %(since)s)
    ORDER BY acn.record
"""

CHANGED_SET_EXPLICIT = f"""
    SELECT DISTINCT acn.record AS id
    {_QUALIFYING_HOLDINGS}
      AND (
        acp.create_date BETWEEN %(since)s AND NOW()
        OR acp.active_date BETWEEN %(since)s AND NOW()
      )
    ORDER BY acn.record
"""

# Records that still have a qualifying holding are never deletes.
_NO_CURRENT_HOLDINGS = """
      AND NOT EXISTS (
        SELECT 1
        FROM asset.call_number live_acn
        JOIN asset.copy live_acp ON live_acp.call_number = live_acn.id
        WHERE live_acn.record = acn.record
          AND live_acp.circ_lib = ANY(%(orgs)s::int[])
          AND NOT live_acp.deleted
          AND NOT live_acn.deleted
      )
"""

_DELETED_HOLDINGS = """
    FROM auditor.asset_copy_history aach
    JOIN asset.call_number acn ON acn.id = aach.call_number
    WHERE aach.circ_lib = ANY(%(orgs)s::int[])
      AND (aach.deleted OR aach.audit_action = 'D')
      AND acn.record > 0
"""

DELETED_SET_ROLLING = f"""
    SELECT DISTINCT acn.record AS id
    {_DELETED_HOLDINGS}
      AND aach.audit_time BETWEEN %(since)s AND NOW()
    {_NO_CURRENT_HOLDINGS}
    ORDER BY acn.record
"""

DELETED_SET_EXPLICIT = f"""
    SELECT DISTINCT acn.record AS id
    {_DELETED_HOLDINGS}
      AND aach.audit_time BETWEEN %(since)s AND NOW()
    {_NO_CURRENT_HOLDINGS}
    ORDER BY acn.record
"""

# Aggregates are ordered by copy id so the five arrays pair positionally.
HOLDINGS_BY_RECORD = """
    SELECT
        acn.record AS record_id,
        array_agg(aou.name ORDER BY acp.id) AS branches,
        array_agg(acpl.name ORDER BY acp.id) AS locations,
        array_agg(acn.label ORDER BY acp.id) AS call_numbers,
        array_agg(COALESCE(acnp.label, '') ORDER BY acp.id) AS prefixes,
        array_agg(COALESCE(acns.label, '') ORDER BY acp.id) AS suffixes
    FROM asset.call_number acn
    JOIN asset.copy acp ON acp.call_number = acn.id
    JOIN actor.org_unit aou ON aou.id = acp.circ_lib
    JOIN asset.copy_location acpl ON acpl.id = acp.location
    LEFT JOIN asset.call_number_prefix acnp ON acnp.id = acn.prefix
    LEFT JOIN asset.call_number_suffix acns ON acns.id = acn.suffix
    WHERE acn.record = ANY(%(records)s::bigint[])
      AND acp.circ_lib = ANY(%(orgs)s::int[])
      AND NOT acp.deleted
      AND NOT acn.deleted
    GROUP BY acn.record
    ORDER BY acn.record
"""

RECORD_PAYLOAD = """
    SELECT id, marc
    FROM biblio.record_entry
    WHERE id = %(id)s
"""
