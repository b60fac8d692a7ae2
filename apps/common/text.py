def normalize_key(value):
    return str(value or "").strip().lower()


def find_by_normalized_key(queryset, field, value, exclude_pk=None):
    """Return the first row of ``queryset`` whose ``field`` matches ``value`` case-insensitively.

    The indexed ``<field>_lower`` shadow column is consulted first. Rows written before the
    shadow column existed keep it empty until ``backfill_normalized_keys`` has run, so when the
    indexed lookup finds nothing those rows are scanned and compared in Python.
    """
    normalized = normalize_key(value)
    if not normalized:
        return None
    shadow_field = f"{field}_lower"
    if exclude_pk is not None:
        queryset = queryset.exclude(pk=exclude_pk)

    match = queryset.filter(**{shadow_field: normalized}).first()
    if match is not None:
        return match

    # Migration compatibility: drop once the backfill is confirmed in every environment.
    for row in queryset.filter(**{shadow_field: ""}).exclude(**{field: ""}):
        if normalize_key(getattr(row, field)) == normalized:
            return row
    return None
