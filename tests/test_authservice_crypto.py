import pytest

from components.authservice import BcryptPasswordHasher, JWTTokenSigner, VerificationError
from components.authservice.contracts import AuthErrorCodes
from tests._support import ACCESS_SECRET, REFRESH_SECRET


def make_signer(**kw):
    kw.setdefault("issuer", "authgate")
    kw.setdefault("audience", "authgate-clients")
    return JWTTokenSigner(**kw)


def test_sign_and_verify_roundtrip_claims():
    signer = make_signer()
    token = signer.sign({"sub": "u-1", "email": "alice@example.com"}, ACCESS_SECRET, 60)
    claims = signer.verify(token, ACCESS_SECRET)
    assert claims["sub"] == "u-1"
    assert claims["email"] == "alice@example.com"
    assert claims["exp"] - claims["iat"] == 60
    assert claims["iss"] == "authgate"
    assert claims["aud"] == "authgate-clients"
    assert claims["jti"]


def test_same_payload_same_second_gives_distinct_tokens():
    signer = make_signer()
    tokens = {signer.sign({"sub": "u-1"}, REFRESH_SECRET, 60) for _ in range(20)}
    assert len(tokens) == 20


def test_wrong_secret_rejected():
    signer = make_signer()
    token = signer.sign({"sub": "u-1"}, ACCESS_SECRET, 60)
    with pytest.raises(VerificationError) as ei:
        signer.verify(token, REFRESH_SECRET)
    assert ei.value.code == AuthErrorCodes.INVALID_TOKEN


def test_tampered_token_rejected():
    signer = make_signer()
    a = signer.sign({"sub": "u-1"}, ACCESS_SECRET, 60)
    b = signer.sign({"sub": "u-2"}, ACCESS_SECRET, 60)
    header, payload, _ = a.split(".")
    forged = ".".join([header, payload, b.split(".")[2]])
    with pytest.raises(VerificationError):
        signer.verify(forged, ACCESS_SECRET)


def test_expired_token_has_its_own_code():
    signer = make_signer()
    token = signer.sign({"sub": "u-1"}, ACCESS_SECRET, -10)
    with pytest.raises(VerificationError) as ei:
        signer.verify(token, ACCESS_SECRET)
    assert ei.value.code == AuthErrorCodes.TOKEN_EXPIRED
    assert ei.value.status_code == 401


def test_leeway_accepts_recently_expired():
    signer = make_signer(leeway_seconds=30)
    token = signer.sign({"sub": "u-1"}, ACCESS_SECRET, -10)
    assert signer.verify(token, ACCESS_SECRET)["sub"] == "u-1"


@pytest.mark.parametrize("garbage", ["", "not-a-jwt", "a.b.c", "Bearer x.y.z"])
def test_garbage_input_rejected(garbage):
    with pytest.raises(VerificationError) as ei:
        make_signer().verify(garbage, ACCESS_SECRET)
    assert ei.value.code == AuthErrorCodes.INVALID_TOKEN


def test_audience_and_issuer_are_enforced():
    token = make_signer().sign({"sub": "u-1"}, ACCESS_SECRET, 60)
    with pytest.raises(VerificationError):
        make_signer(audience="someone-else").verify(token, ACCESS_SECRET)
    with pytest.raises(VerificationError):
        make_signer(issuer="other-issuer").verify(token, ACCESS_SECRET)


def test_subject_is_required():
    signer = make_signer()
    token = signer.sign({"email": "alice@example.com"}, ACCESS_SECRET, 60)
    with pytest.raises(VerificationError):
        signer.verify(token, ACCESS_SECRET)


def test_empty_secret_refused():
    with pytest.raises(ValueError):
        make_signer().sign({"sub": "u-1"}, "", 60)


def test_bcrypt_hash_and_verify():
    hasher = BcryptPasswordHasher(rounds=4)
    h = hasher.hash("secret123")
    assert h.startswith("$2b$04$")
    assert h != "secret123"
    assert hasher.verify("secret123", h)
    assert not hasher.verify("secret124", h)


def test_bcrypt_salts_each_hash():
    hasher = BcryptPasswordHasher(rounds=4)
    assert hasher.hash("secret123") != hasher.hash("secret123")


@pytest.mark.parametrize("bad_hash", ["", "plaintext", "$2b$04$truncated"])
def test_bcrypt_verify_false_on_unusable_hash(bad_hash):
    assert BcryptPasswordHasher(rounds=4).verify("secret123", bad_hash) is False
