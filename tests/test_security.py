from noticeboard.core.security import ScryptPasswordHasher


def test_hash_and_verify_round_trip():
    hasher = ScryptPasswordHasher(n=2**8)
    encoded = hasher.hash("Member@2024")

    assert encoded.startswith("scrypt$256$8$1$")
    assert "Member@2024" not in encoded
    assert hasher.verify("Member@2024", encoded) is True
    assert hasher.verify("member@2024", encoded) is False


def test_hashes_are_salted():
    hasher = ScryptPasswordHasher(n=2**8)
    assert hasher.hash("secret1") != hasher.hash("secret1")


def test_verify_uses_parameters_stored_in_hash():
    encoded = ScryptPasswordHasher(n=2**8).hash("secret1")
    assert ScryptPasswordHasher(n=2**10).verify("secret1", encoded) is True


def test_verify_rejects_malformed_hash():
    hasher = ScryptPasswordHasher(n=2**8)
    assert hasher.verify("secret1", "not-a-hash") is False
    assert hasher.verify("secret1", "bcrypt$1$2$3$abc$def") is False
