from unittest import mock

from django.test import TestCase, override_settings

from importer.exceptions import PermanentProviderError, TransientProviderError
from importer.providers.omdb import OMDbClient
from importer.providers.tmdb import TMDbClient

from .test_http import make_response
from .utils import tmdb_movie


def make_client(client_class, *responses):
    session = mock.MagicMock()
    session.headers = {}
    session.get.side_effect = list(responses)
    client = client_class(
        api_key="secret",
        session=session,
        bucket=mock.MagicMock(interval=1),
        max_retries=0,
    )
    return client, session


class TMDbClientTests(TestCase):
    def test_discover_movies_defaults_and_filters(self):
        client, session = make_client(
            TMDbClient,
            make_response(
                json_data={
                    "page": 2,
                    "total_pages": 7,
                    "total_results": 130,
                    "results": [{"id": 10}, {"id": 20}],
                }
            ),
        )

        page = client.discover_movies(2, {"sort_by": "release_date.desc"})

        self.assertEqual([movie.tmdb_id for movie in page.movies], [10, 20])
        self.assertEqual(page.total_pages, 7)
        url = session.get.call_args.args[0]
        params = session.get.call_args.kwargs["params"]
        self.assertTrue(url.endswith("/discover/movie"))
        self.assertEqual(params["api_key"], "secret")
        self.assertEqual(params["page"], 2)
        self.assertEqual(params["sort_by"], "release_date.desc")
        self.assertEqual(params["include_adult"], "false")

    @override_settings(IMPORTER_DISCOVERY_MAX_PAGES=500)
    def test_discover_movies_caps_total_pages(self):
        client, _session = make_client(
            TMDbClient,
            make_response(
                json_data={
                    "page": 1,
                    "total_pages": 45000,
                    "total_results": 900000,
                    "results": [{"id": 1}],
                }
            ),
        )

        page = client.discover_movies(1)

        self.assertEqual(page.total_pages, 500)
        self.assertEqual(page.total_results, 900000)

    def test_movie_details(self):
        client, session = make_client(
            TMDbClient, make_response(json_data=tmdb_movie(550, title="Fight Club"))
        )

        candidate = client.movie_details(550)

        self.assertEqual(candidate.tmdb_id, 550)
        self.assertEqual(candidate.title, "Fight Club")
        self.assertEqual(
            session.get.call_args.kwargs["params"]["append_to_response"],
            "credits,external_ids,images",
        )

    def test_unreadable_movie_details_are_transient(self):
        client, _session = make_client(
            TMDbClient, make_response(json_data={"status_message": "odd"})
        )
        with self.assertRaises(TransientProviderError):
            client.movie_details(550)

    def test_missing_movie_is_permanent(self):
        client, _session = make_client(TMDbClient, make_response(status_code=404))
        with self.assertRaises(PermanentProviderError) as ctx:
            client.movie_details(1)
        self.assertEqual(ctx.exception.status_code, 404)

    def test_find_by_imdb_id(self):
        client, session = make_client(
            TMDbClient,
            make_response(json_data={"movie_results": [{"id": 550}]}),
            make_response(json_data={"movie_results": []}),
        )

        self.assertEqual(client.find_by_imdb_id("tt0137523"), 550)
        self.assertEqual(
            session.get.call_args.kwargs["params"]["external_source"], "imdb_id"
        )
        with self.assertRaises(PermanentProviderError):
            client.find_by_imdb_id("tt9999999")


class OMDbClientTests(TestCase):
    def test_lookup(self):
        client, session = make_client(
            OMDbClient,
            make_response(json_data={"Response": "True", "imdbRating": "8.8"}),
        )

        self.assertEqual(client.lookup("tt0137523")["imdbRating"], "8.8")
        params = session.get.call_args.kwargs["params"]
        self.assertEqual(params["apikey"], "secret")
        self.assertEqual(params["i"], "tt0137523")

    def test_error_bodies(self):
        client, _session = make_client(
            OMDbClient,
            make_response(json_data={"Response": "False", "Error": "Movie not found!"}),
            make_response(
                json_data={"Response": "False", "Error": "Request limit reached!"}
            ),
        )

        with self.assertRaises(PermanentProviderError):
            client.lookup("tt0000001")
        with self.assertRaises(TransientProviderError):
            client.lookup("tt0000001")
