from agent.keys import derive_cache_key


def test_key_is_case_and_punctuation_insensitive() -> None:
    assert derive_cache_key("Federalism!") == derive_cache_key("federalism")
    assert derive_cache_key("What is federalism?") == "whatisfederalism"


def test_key_is_deterministic() -> None:
    query = "Explain Art. 356 & the S.R. Bommai case"
    assert derive_cache_key(query) == derive_cache_key(query)
    assert derive_cache_key(query) == "explainart356thesrbommaicase"


def test_key_truncates_to_fifty_characters() -> None:
    base = "a" * 50
    assert derive_cache_key(base + "xyz") == base
    # Queries that only differ past the cutoff share a key.
    assert derive_cache_key(base + " one thing") == derive_cache_key(base + " another")


def test_non_alphanumeric_input_maps_to_empty_key() -> None:
    assert derive_cache_key("?!… 🙂") == ""
    assert derive_cache_key("") == ""
    assert derive_cache_key("नमस्ते") == ""
