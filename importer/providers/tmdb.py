from logging import getLogger

from django.conf import settings

from importer.candidates import DiscoveryPage, MovieCandidate
from importer.exceptions import PermanentProviderError, TransientProviderError

from .http import RateLimitedClient

logger = getLogger(__name__)


class TMDbClient(RateLimitedClient):
    """Client for the primary catalog (The Movie Database v3 API)"""

    provider = "tmdb"

    def default_params(self):
        return {"api_key": self.api_key}

    def discover_movies(self, page, filters=None):
        """
        Return one page of the catalog, most popular first unless ``filters``
        chooses another ``sort_by``.

        TMDb refuses discovery pages past IMPORTER_DISCOVERY_MAX_PAGES, so
        ``total_pages`` never exceeds it.
        """
        params = {
            "sort_by": "popularity.desc",
            "include_adult": "false",
            "include_video": "false",
            **(filters or {}),
            "page": page,
        }
        data = self.get_json("discover/movie", params)
        discovery_page = DiscoveryPage.from_tmdb(data, page)

        max_pages = settings.IMPORTER_DISCOVERY_MAX_PAGES
        if discovery_page.total_pages > max_pages:
            discovery_page = DiscoveryPage(
                page=discovery_page.page,
                total_pages=max_pages,
                total_results=discovery_page.total_results,
                movies=discovery_page.movies,
            )
        return discovery_page

    def movie_details(self, tmdb_id):
        data = self.get_json(
            f"movie/{tmdb_id}",
            {"append_to_response": "credits,external_ids,images"},
        )
        try:
            return MovieCandidate.from_tmdb(data)
        except ValueError as exc:
            # The API answered 200 with something other than a movie
            raise TransientProviderError(
                f"tmdb returned an unreadable record for movie {tmdb_id}",
                provider=self.provider,
            ) from exc

    def find_by_imdb_id(self, imdb_id):
        """
        Return the TMDb id of the movie with IMDb id ``imdb_id``.

        Raises:
            PermanentProviderError: If TMDb does not know the IMDb id.
        """
        data = self.get_json(f"find/{imdb_id}", {"external_source": "imdb_id"})
        for result in data.get("movie_results") or []:
            if result.get("id"):
                return int(result["id"])
        logger.info("No tmdb movie found for %s", imdb_id)
        raise PermanentProviderError(
            f"tmdb has no movie with IMDb id {imdb_id}",
            provider=self.provider,
            status_code=404,
        )
