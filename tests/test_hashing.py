from utils.hashing import composite_cache_key, fingerprint


def test_fingerprint_matches_fnv1a_reference_values():
    assert fingerprint("") == "811c9dc5"
    assert fingerprint("a") == "e40c292c"
    assert fingerprint("foobar") == "bf9cf968"


def test_fingerprint_is_deterministic_and_fixed_width():
    samples = ["Chapter one.", "Über straße", "emoji \U0001f600", "x" * 5000]
    for sample in samples:
        first = fingerprint(sample)
        assert first == fingerprint(sample)
        assert len(first) == 8
        int(first, 16)


def test_fingerprint_differs_for_small_edits():
    assert fingerprint("The cat sat.") != fingerprint("The cat sat!")


def test_composite_cache_key():
    assert composite_cache_key("Line Editor", "0000abcd", "ffff0000") == (
        "Line Editor:0000abcd:ffff0000"
    )
