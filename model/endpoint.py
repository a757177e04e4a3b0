from pydantic import BaseModel
from util.errors import ConfigError


class ServiceEndpoint(BaseModel):
    host: str
    port: int

    @classmethod
    def parse(cls, address: str) -> "ServiceEndpoint":
        """
        Split a "host:port" string on its first colon.
        Raises ConfigError when the separator is missing, the host is empty,
        or the port is not a number in 0..65535.
        """
        host, sep, port = (address or "").strip().partition(":")
        if not sep or not host:
            raise ConfigError(f"Invalid address format: {address!r}")
        if not port.isdigit():
            raise ConfigError(f"Invalid port in address: {address!r}")
        port_int = int(port)
        if port_int > 65535:
            raise ConfigError(f"Port out of range in address: {address!r}")
        return cls(host=host, port=port_int)

    def base_url(self, scheme: str = "http") -> str:
        return f"{scheme}://{self.host}:{self.port}"

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"
