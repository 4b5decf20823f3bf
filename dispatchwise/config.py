import os
from http import HTTPStatus
from typing import Any, Mapping

import msgspec
from msgspec import Struct, field

from .codec import DEFAULT_DISCRIMINATOR

ENV_PREFIX = "DISPATCHWISE_"


class AdapterConfig(Struct, frozen=True, kw_only=True):
    """
    prefix: path prefix of the two command endpoints
    cors_origins: origins allowed to call the endpoints from a browser
    discriminator: name of the property carrying the class of each encoded object
    client_error_status: status of unknown command types, validator rejections
    and malformed envelopes, set to 500 to report them as server errors
    registry: "module:attribute" path of the `SubscriberRegistry` served by the app
    """

    prefix: str = "/commands"
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    discriminator: str = DEFAULT_DISCRIMINATOR
    client_error_status: int = HTTPStatus.BAD_REQUEST
    registry: str = ""

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AdapterConfig":
        """
        read `DISPATCHWISE_*` variables, e.g.

        DISPATCHWISE_CORS_ORIGINS="https://a.example,https://b.example"
        DISPATCHWISE_CLIENT_ERROR_STATUS=500
        """
        environ = os.environ if environ is None else environ
        values: dict[str, Any] = {
            key[len(ENV_PREFIX) :].lower(): value
            for key, value in environ.items()
            if key.startswith(ENV_PREFIX)
        }
        if (origins := values.get("cors_origins")) is not None:
            values["cors_origins"] = [o.strip() for o in origins.split(",") if o.strip()]
        return msgspec.convert(values, type=cls, strict=False)
