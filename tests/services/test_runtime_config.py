import ipaddress

import pytest

from openenv.errors import InvalidUrlError, NoIPv4AddressError
from openenv.services.runtime_config import RuntimeUrlConfig, pick_lan_ipv4


class FakeResolver:
    def __init__(self, api_ip):
        self.api_ip = ipaddress.ip_address(api_ip)

    def get_api_ip(self):
        return self.api_ip


class FakeBuilder:
    def __init__(self, catalog_suffix):
        self.catalog_suffix = catalog_suffix

    def obtain_connection_string(self, name):
        return f"Initial Catalog={name}{self.catalog_suffix}"

    def get_current_catalog(self, name):
        return f"{name}{self.catalog_suffix}"


def test_init_url_blank_uses_first_lan_address():
    config = RuntimeUrlConfig(address_provider=lambda: ["127.0.0.1", "10.0.0.5"])

    config.init_url("")

    assert config.url == "http://10.0.0.5"


def test_pick_lan_ipv4_falls_back_to_loopback():
    assert pick_lan_ipv4(["::1", "127.0.0.1"]) == "127.0.0.1"


def test_pick_lan_ipv4_without_ipv4_fails():
    with pytest.raises(NoIPv4AddressError, match="No network adapters"):
        pick_lan_ipv4(["::1", "fe80::1"])


@pytest.mark.parametrize("url", ["ftp://10.0.0.5", "not a url", "http://", "http://host:notaport"])
def test_init_url_rejects_invalid_urls(url):
    config = RuntimeUrlConfig(address_provider=lambda: ["10.0.0.5"])

    with pytest.raises(InvalidUrlError):
        config.init_url(url)

    assert config.url is None


def test_update_url_keeps_explicit_port_and_path():
    config = RuntimeUrlConfig(address_provider=lambda: [])
    config.init_url("https://example.local:8443/api")

    config.update_url_with_api_ip(FakeResolver("10.0.0.2"))

    assert config.url == "https://10.0.0.2:8443/api"


def test_update_url_drops_default_port_and_brackets_ipv6():
    config = RuntimeUrlConfig(address_provider=lambda: [])
    config.init_url("http://example.local:80")

    config.update_url_with_api_ip(FakeResolver("fd00::2"))

    assert config.url == "http://[fd00::2]"


def test_update_url_starts_from_localhost_when_unset():
    config = RuntimeUrlConfig(address_provider=lambda: [])

    config.update_url_with_api_ip(FakeResolver("10.0.0.3"))

    assert config.url == "http://10.0.0.3"


def test_load_connections_normalises_names_first_wins():
    config = RuntimeUrlConfig(address_provider=lambda: [])

    config.load_connections(
        {
            "OrdersConnection": "first",
            "Orders_ReadOnly": "second",
            "Customers": None,
        }
    )

    assert config.connection_strings == {"Orders": "first", "Customers": ""}


def test_refresh_connections_rebuilds_every_entry_and_url():
    config = RuntimeUrlConfig(address_provider=lambda: [])
    config.load_connections({"OrdersConnection": "", "Customers": ""})

    config.refresh_connections(FakeBuilder("_Test"), FakeResolver("10.0.0.2"))

    assert config.get_connection_string("Orders") == "Initial Catalog=Orders_Test"
    assert config.get_connection_string("Customers") == "Initial Catalog=Customers_Test"
    assert config.url == "http://10.0.0.2"
