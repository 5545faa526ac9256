import hashlib


def query_seed(filter_text: str) -> int:
    """Derive a deterministic random seed from a filter string.

    The same filter always yields the same seed, so a simulated service that
    drops entries on truncation drops the same ones on every repeat.

    Args:
        filter_text: Filter as sent to the lookup service

    Returns:
        Integer seed (md5 of the UTF-8 filter)
    """
    return int(hashlib.md5(filter_text.encode("utf-8")).hexdigest(), 16)
