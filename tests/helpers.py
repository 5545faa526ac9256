"""Shared test data helpers."""

from mincore.providers.lookup import DirectoryLookupProvider

# Small namespaces keep hand-traced scenarios readable
SMALL_ALPHABETS = {
    "sn": "abc",
    "uid": "0123456789abcdefghijklmnopqrstuvwxyz",
}

PERSON_ALPHABETS = {
    "sn": " '-abcdefghijklmnopqrstuvwxyz",
    "uid": "0123456789abcdefghijklmnopqrstuvwxyz",
}


def people(*surnames: str) -> list[dict[str, str]]:
    """Directory entries with generated uids, one per surname."""
    return [{"uid": f"u{i:02d}", "sn": sn} for i, sn in enumerate(surnames, 1)]


def mirrored(store) -> list[tuple[str, str]]:
    """``(uid, sn)`` pairs held by a store, ordered by uid."""
    return [(e.key, e.get("sn")) for e in store.all_entries()]


def remote(directory: DirectoryLookupProvider) -> list[tuple[str, str]]:
    """``(uid, sn)`` pairs served by a directory, ordered by uid."""
    return sorted((e["uid"], e["sn"].lower()) for e in directory.entries)


def assert_tiles(splinters, start, end=None):
    """Plain splinters cover ``[start, end)`` without gaps or overlaps.

    LODIS splinters of one value must sit on a plain gap ``[v, after(v))``
    and cover the uniqueness namespace among themselves.
    """
    plain = [s for s in splinters if not s.is_lodis]
    lodis = [s for s in splinters if s.is_lodis]
    bounds = sorted(
        [(s.start, s.end) for s in plain]
        + sorted({(s.start, s.end) for s in lodis})
    )
    assert bounds[0][0] == start
    for (_, prev_end), (next_start, _) in zip(bounds, bounds[1:]):
        assert prev_end == next_start
    assert bounds[-1][1] == end

    for value in {s.start for s in lodis}:
        group = sorted(
            (s for s in lodis if s.start == value), key=lambda s: s.lodis_start
        )
        for prev, nxt in zip(group, group[1:]):
            assert prev.lodis_end == nxt.lodis_start
        assert group[-1].lodis_end is None
