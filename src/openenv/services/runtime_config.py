"""Process-wide URL and connection-string registry for OpenEnv."""

import ipaddress
import socket
import threading
from typing import Callable, Dict, List, Mapping, Optional
from urllib.parse import urlsplit, urlunsplit

from openenv.constants import (
    ALLOWED_URL_SCHEMES,
    CONNECTION_NAME_DELIMITER,
    CONNECTION_NAME_TOKEN,
    DEFAULT_URL,
)
from openenv.errors import InvalidUrlError, NoIPv4AddressError

_DEFAULT_PORTS = {"http": 80, "https": 443}


def local_ipv4_addresses() -> List[str]:
    """IPv4 addresses bound to this host, in resolver order."""
    addresses: List[str] = []
    try:
        infos = socket.getaddrinfo(socket.gethostname(), None, socket.AF_INET)
    except OSError:
        infos = []
    for info in infos:
        address = info[4][0]
        if address not in addresses:
            addresses.append(address)
    return addresses


def pick_lan_ipv4(addresses: List[str]) -> str:
    """First non-loopback IPv4 address, else the first IPv4 address of any kind."""
    candidates = []
    for address in addresses:
        try:
            parsed = ipaddress.ip_address(address)
        except ValueError:
            continue
        if parsed.version == 4:
            candidates.append(parsed)

    for candidate in candidates:
        if not candidate.is_loopback:
            return str(candidate)
    if candidates:
        return str(candidates[0])
    raise NoIPv4AddressError("No network adapters with an IPv4 address in the system!")


class RuntimeUrlConfig:
    """Base URL and connection strings, rewritten whenever the hosting mode changes."""

    def __init__(self, address_provider: Callable[[], List[str]] = local_ipv4_addresses, logger=None):
        self.address_provider = address_provider
        self.logger = logger
        self._lock = threading.RLock()
        self._url: Optional[str] = None
        self._connection_strings: Dict[str, str] = {}

    @property
    def url(self) -> Optional[str]:
        with self._lock:
            return self._url

    @property
    def connection_strings(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._connection_strings)

    def get_connection_string(self, name: str) -> str:
        with self._lock:
            return self._connection_strings[name]

    def init_url(self, url: Optional[str]):
        if not url or not url.strip():
            # localhost is not reachable from the LAN, bind to the adapter address
            url = f"http://{pick_lan_ipv4(self.address_provider())}"

        parsed = urlsplit(url.strip())
        if parsed.scheme.lower() not in ALLOWED_URL_SCHEMES or not parsed.hostname:
            raise InvalidUrlError(f"Invalid URL: {url}")
        try:
            parsed.port
        except ValueError as exc:
            raise InvalidUrlError(f"Invalid URL: {url}") from exc

        with self._lock:
            self._url = parsed.geturl()

    def update_url_with_api_ip(self, resolver):
        with self._lock:
            if self._url is None:
                self.init_url(DEFAULT_URL)

            parsed = urlsplit(self._url)
            ip = resolver.get_api_ip()
            host = f"[{ip}]" if ip.version == 6 else str(ip)
            port = parsed.port
            if port is not None and port != _DEFAULT_PORTS.get(parsed.scheme.lower()):
                host = f"{host}:{port}"

            self.init_url(urlunsplit((parsed.scheme, host, parsed.path, parsed.query, parsed.fragment)))

    def load_connections(self, raw_entries: Mapping[str, str]):
        with self._lock:
            for raw_name, value in raw_entries.items():
                name = self.normalize_connection_name(raw_name)
                if name in self._connection_strings:
                    continue
                self._connection_strings[name] = value or ""

    def refresh_connections(self, builder, resolver):
        """Rebuilds every registered connection string for the current mode."""
        with self._lock:
            names = list(self._connection_strings)
            for name in names:
                self._connection_strings[name] = builder.obtain_connection_string(name)
            self.update_url_with_api_ip(resolver)

        if self.logger:
            for name in names:
                self.logger.debug("%s -> catalog %s", name, builder.get_current_catalog(name))
            self.logger.debug("Runtime URL: %s", self.url)

    @staticmethod
    def normalize_connection_name(raw_name: str) -> str:
        name = raw_name.replace(CONNECTION_NAME_TOKEN, "")
        return name.split(CONNECTION_NAME_DELIMITER)[0]
