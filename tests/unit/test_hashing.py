import pytest
from utils.hashing import digest, matches, DigestFormatError

def test_digest_is_fixed_width_hex():
    value = digest("some.refresh.token")
    assert len(value) == 16
    assert int(value, 16) >= 0
    assert value == value.lower()

    assert digest("some.refresh.token") == value
    assert digest("") != value


def test_digest_does_not_contain_secret():
    secret = "eyJhbGciOiJIUzUxMiJ9.payload.signature"
    assert secret not in digest(secret)


def test_matches():
    secret = "eyJhbGciOiJIUzUxMiJ9.payload.signature"
    stored = digest(secret)

    assert matches(stored, secret) is True
    assert matches(stored, secret + "x") is False
    assert matches(stored, "") is False


def test_matches_compares_integers_not_strings():
    secret = "token-value"
    stored = digest(secret)

    assert matches(stored.upper(), secret) is True
    assert matches(stored.lstrip("0") or "0", secret) is True


def test_distinct_secrets_do_not_match():
    secrets = [f"refresh-token-{i}" for i in range(200)]
    digests = {digest(s) for s in secrets}
    assert len(digests) == len(secrets)

    assert matches(digest(secrets[0]), secrets[1]) is False


@pytest.mark.parametrize("stored", [
    "", "   ", "not-hex", "12345678901234567",
    "0xff", "f_f", " ff ", "+ff", "-1", "ff\n",
])
def test_corrupted_stored_digest_raises(stored):
    with pytest.raises(DigestFormatError):
        matches(stored, "anything")
