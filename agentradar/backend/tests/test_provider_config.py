# tests/test_provider_config.py
import pytest

from mlshub.domain.errors import ProviderConfigError
from mlshub.domain.provider_config import (
    ApiKeyAuth,
    BasicAuth,
    BearerAuth,
    CustomMLSProviderConfig,
    FieldMapping,
    FieldPath,
    OAuthClientCredentials,
    parse_auth,
)


def test_field_path_resolves_nested_and_missing():
    p = FieldPath.parse("list_price.amount")
    assert p.segments == ("list_price", "amount")
    assert p.resolve({"list_price": {"amount": 500000}}) == 500000
    assert p.resolve({"list_price": None}) is None
    assert p.resolve({}) is None
    assert p.resolve({"list_price": "flat"}) is None


def test_field_path_list_index():
    p = FieldPath.parse("media.0.url")
    assert p.resolve({"media": [{"url": "a.jpg"}, {"url": "b.jpg"}]}) == "a.jpg"
    assert p.resolve({"media": []}) is None


@pytest.mark.parametrize("bad", ["", "   ", "a..b", ".a", None, 12])
def test_field_path_rejects_bad_paths(bad):
    with pytest.raises(ProviderConfigError):
        FieldPath.parse(bad)


def test_mapping_requires_listing_id():
    with pytest.raises(ProviderConfigError, match="listingId"):
        FieldMapping.compile({"price": "price"})


def test_mapping_rejects_unknown_field():
    with pytest.raises(ProviderConfigError, match="bogus"):
        FieldMapping.compile({"listingId": "id", "bogus": "x"})


def test_mapping_coordinates_need_both_axes():
    with pytest.raises(ProviderConfigError, match="coordinates"):
        FieldMapping.compile({"listingId": "id", "coordinates": {"lat": "geo.lat"}})

    m = FieldMapping.compile({"listingId": "id", "coordinates": {"lat": "geo.lat", "lng": "geo.lng"}})
    assert m.has_coordinates
    assert m.to_dict()["coordinates"] == {"lat": "geo.lat", "lng": "geo.lng"}


def test_parse_auth_variants():
    assert parse_auth({"type": "bearer", "token": "t"}) == BearerAuth(token="t")
    assert parse_auth({"type": "apikey", "apiKey": "k"}) == ApiKeyAuth(api_key="k")
    assert parse_auth({"type": "apikey", "api_key": "k", "headerName": "X-Key"}).header_name == "X-Key"
    assert parse_auth({"type": "basic", "username": "u", "password": "p"}) == BasicAuth("u", "p")

    oauth = parse_auth({"type": "oauth", "clientId": "c", "clientSecret": "s", "scope": "read"})
    assert isinstance(oauth, OAuthClientCredentials)
    assert oauth.token_url is None
    assert oauth.type == "oauth"


@pytest.mark.parametrize(
    "raw",
    [
        {"type": "digest", "username": "u"},
        {"type": "bearer"},
        {"type": "oauth", "clientId": "c"},
        {"token": "t"},
        "bearer",
    ],
)
def test_parse_auth_rejects_bad_input(raw):
    with pytest.raises(ProviderConfigError):
        parse_auth(raw)


def test_config_from_dict_applies_defaults(custom_config):
    custom_config.pop("rateLimitRPM")
    cfg = CustomMLSProviderConfig.from_dict(custom_config, default_rpm=45, default_timeout_ms=5000)

    assert cfg.rate_limit_rpm == 45
    assert cfg.timeout_ms == 5000
    assert cfg.search_path == "/search"
    assert cfg.listing_path == "/listings/{id}"
    assert cfg.default_province is None
    assert isinstance(cfg.authentication, BearerAuth)


@pytest.mark.parametrize(
    "patch",
    [
        {"endpoint": "ftp://acme.example.com"},
        {"endpoint": "not a url"},
        {"name": ""},
        {"rateLimitRPM": 0},
        {"timeout": "soon"},
        {"listingPath": "/listings"},
        {"authentication": {"type": "kerberos"}},
        {"mapping": {"price": "price"}},
    ],
)
def test_config_from_dict_rejects(custom_config, patch):
    custom_config.update(patch)
    with pytest.raises(ProviderConfigError):
        CustomMLSProviderConfig.from_dict(custom_config)


def test_config_to_dict_is_accepted_back(custom_config):
    custom_config["authentication"] = {"type": "oauth", "clientId": "c", "clientSecret": "s"}
    custom_config["searchPath"] = "v2/search"
    cfg = CustomMLSProviderConfig.from_dict(custom_config)

    assert cfg.search_path == "/v2/search"
    assert CustomMLSProviderConfig.from_dict(cfg.to_dict()) == cfg
