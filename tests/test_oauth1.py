# tests/test_oauth1.py
from crosspost.platforms import oauth1

# worked example from X's "Creating a signature" developer docs
CONSUMER_KEY = "xvz1evFS4wEEPTGEFPHBog"
CONSUMER_SECRET = "kAcSOqF21Fu85e7zjz7ZN2U4ZRhfV3WpwPAoE3Z7kBw"
TOKEN = "370773112-GmHxMAgYyLbNEtIKZeRNFsMKPR9EyMZeS9weJAEb"
TOKEN_SECRET = "LswwdoUaIvS8ltyTt5jkRh4J50vUPVVHtR2YPi5kE"
NONCE = "kYjzVBB8Y0ZFabxSWbWovY3uYSQ2pTgmZeNu2VS4cg"
TIMESTAMP = "1318622958"
URL = "https://api.twitter.com/1.1/statuses/update.json"
BODY = {"status": "Hello Ladies + Gentlemen, a signed OAuth request!", "include_entities": "true"}


def _params():
    return {
        **BODY,
        "oauth_consumer_key": CONSUMER_KEY,
        "oauth_nonce": NONCE,
        "oauth_signature_method": "HMAC-SHA1",
        "oauth_timestamp": TIMESTAMP,
        "oauth_token": TOKEN,
        "oauth_version": "1.0",
    }


def test_percent_encoding_follows_rfc3986():
    assert oauth1.percent_encode("Ladies + Gentlemen") == "Ladies%20%2B%20Gentlemen"
    assert oauth1.percent_encode("An encoded string!") == "An%20encoded%20string%21"
    assert oauth1.percent_encode("Dogs, Cats & Mice") == "Dogs%2C%20Cats%20%26%20Mice"
    assert oauth1.percent_encode("a-b.c_d~e") == "a-b.c_d~e"


def test_signature_base_string_matches_reference():
    base = oauth1.signature_base_string("post", URL, _params())
    assert base.startswith("POST&https%3A%2F%2Fapi.twitter.com%2F1.1%2Fstatuses%2Fupdate.json&include_entities%3Dtrue")
    assert "status%3DHello%2520Ladies%2520%252B%2520Gentlemen%252C%2520a%2520signed%2520OAuth%2520request%2521" in base


def test_signature_matches_reference():
    assert oauth1.sign("POST", URL, _params(), CONSUMER_SECRET, TOKEN_SECRET) == "hCtSmYh+iHYCEqBWrE7C7hYmtUk="


def test_authorization_header_signs_body_but_does_not_send_it():
    header = oauth1.authorization_header(
        "POST",
        URL,
        consumer_key=CONSUMER_KEY,
        consumer_secret=CONSUMER_SECRET,
        token=TOKEN,
        token_secret=TOKEN_SECRET,
        body_params=BODY,
        nonce=NONCE,
        timestamp=TIMESTAMP,
    )
    assert header.startswith("OAuth ")
    assert 'oauth_signature="hCtSmYh%2BiHYCEqBWrE7C7hYmtUk%3D"' in header
    assert "status" not in header
    assert 'oauth_token="370773112-GmHxMAgYyLbNEtIKZeRNFsMKPR9EyMZeS9weJAEb"' in header


def test_request_token_header_has_callback_and_no_token():
    header = oauth1.authorization_header(
        "POST",
        "https://api.twitter.com/oauth/request_token",
        consumer_key="ck",
        consumer_secret="cs",
        extra_oauth_params={"oauth_callback": "https://app.example.com/auth/x/callback?state=abc"},
    )
    assert 'oauth_callback="https%3A%2F%2Fapp.example.com%2Fauth%2Fx%2Fcallback%3Fstate%3Dabc"' in header
    assert "oauth_token=" not in header
