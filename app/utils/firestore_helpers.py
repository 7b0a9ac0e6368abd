"""
Firestore query helpers.

NOTE: firebase_admin still accepts positional where() arguments; the
FieldFilter form is only needed once the positional form is removed.
"""


def where_filter(query, field_path: str, op_string: str, value):
    """
    Apply a single where clause to a collection or query.

    Usage:
        query = where_filter(collection, "uid", "==", uid)
        query = where_filter(query, "status", "==", "new")
    """
    return query.where(field_path, op_string, value)
