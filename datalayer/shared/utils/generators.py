"""Document ID generation for backends that do not assign IDs themselves."""

from cuid2 import cuid_wrapper

_cuid = cuid_wrapper()


def generate_cuid() -> str:
    """Return a new CUID2 (collision-resistant, URL-safe, no ':' separator).

    Used as the document ID when a user is created without one.
    """
    value = _cuid()
    if not isinstance(value, str):
        raise TypeError(f"cuid2 returned {type(value).__name__}, expected str")
    return value
