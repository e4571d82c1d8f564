from logging import getLogger

from importer.exceptions import PermanentProviderError, TransientProviderError

from .http import RateLimitedClient

logger = getLogger(__name__)


class OMDbClient(RateLimitedClient):
    """
    Client for the secondary metadata provider.

    OMDb answers 200 even for errors and reports them in the body as
    ``{"Response": "False", "Error": "..."}``.
    """

    provider = "omdb"

    def default_params(self):
        return {"apikey": self.api_key}

    def lookup(self, imdb_id):
        data = self.get_json("", {"i": imdb_id, "plot": "short"})

        if str(data.get("Response", "True")).lower() == "false":
            error = data.get("Error") or "Unknown error"
            message = f"omdb lookup of {imdb_id} failed: {error}"
            if "limit" in error.lower():
                raise TransientProviderError(message, provider=self.provider)
            raise PermanentProviderError(message, provider=self.provider)

        return data
