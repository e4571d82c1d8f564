"""
Typed records built from provider responses.

Provider payloads are parsed once, here, and tolerantly: a missing or
malformed optional field becomes None (or an empty value) instead of an
error. Everything downstream of the provider clients works with these
records rather than raw dictionaries.
"""

from dataclasses import dataclass, field
from datetime import date
from logging import getLogger
from typing import Any, Optional

from django.utils.dateparse import parse_date

logger = getLogger(__name__)


def _int(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _float(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _str(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _date(value) -> Optional[date]:
    if not value:
        return None
    try:
        return parse_date(str(value))
    except ValueError:
        return None


@dataclass(frozen=True)
class DiscoveredMovie:
    """A movie as listed on a discovery page"""

    tmdb_id: int
    title: str = ""
    release_date: Optional[date] = None
    popularity: float = 0.0

    @classmethod
    def from_tmdb(cls, data: dict[str, Any]) -> Optional["DiscoveredMovie"]:
        tmdb_id = _int(data.get("id"))
        if tmdb_id is None:
            return None
        return cls(
            tmdb_id=tmdb_id,
            title=_str(data.get("title")),
            release_date=_date(data.get("release_date")),
            popularity=_float(data.get("popularity")),
        )


@dataclass(frozen=True)
class DiscoveryPage:
    page: int
    total_pages: int
    total_results: int
    movies: list[DiscoveredMovie]

    @classmethod
    def from_tmdb(cls, data: dict[str, Any], requested_page: int) -> "DiscoveryPage":
        movies = []
        for result in data.get("results") or []:
            movie = DiscoveredMovie.from_tmdb(result)
            if movie is None:
                logger.warning(
                    "Skipping discovery result without an id",
                    extra={"data": {"result": result, "page": requested_page}},
                )
                continue
            movies.append(movie)
        return cls(
            page=_int(data.get("page")) or requested_page,
            total_pages=_int(data.get("total_pages")) or 0,
            total_results=_int(data.get("total_results")) or 0,
            movies=movies,
        )


@dataclass(frozen=True)
class PersonCandidate:
    tmdb_id: int
    name: str
    popularity: float = 0.0
    profile_path: str = ""
    known_for_department: str = ""
    imdb_id: str = ""

    @property
    def has_profile(self):
        return bool(self.profile_path)

    @classmethod
    def from_tmdb(cls, data: dict[str, Any]) -> Optional["PersonCandidate"]:
        tmdb_id = _int(data.get("id"))
        if tmdb_id is None:
            return None
        return cls(
            tmdb_id=tmdb_id,
            name=_str(data.get("name")) or _str(data.get("original_name")),
            popularity=_float(data.get("popularity")),
            profile_path=_str(data.get("profile_path")),
            known_for_department=_str(data.get("known_for_department")),
            imdb_id=_str(data.get("imdb_id")),
        )

    def person_fields(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "popularity": self.popularity,
            "profile_path": self.profile_path,
            "known_for_department": self.known_for_department,
        }


@dataclass(frozen=True)
class CreditCandidate:
    CAST = "cast"
    CREW = "crew"

    credit_id: str
    credit_type: str
    person: PersonCandidate
    character: str = ""
    cast_order: Optional[int] = None
    department: str = ""
    job: str = ""

    @property
    def is_cast(self):
        return self.credit_type == self.CAST

    @property
    def is_director(self):
        return self.credit_type == self.CREW and self.job == "Director"

    @classmethod
    def from_tmdb(
        cls, data: dict[str, Any], credit_type: str
    ) -> Optional["CreditCandidate"]:
        person = PersonCandidate.from_tmdb(data)
        credit_id = _str(data.get("credit_id"))
        if person is None or not credit_id:
            return None
        return cls(
            credit_id=credit_id,
            credit_type=credit_type,
            person=person,
            character=_str(data.get("character")),
            cast_order=_int(data.get("order")) if credit_type == cls.CAST else None,
            department=_str(data.get("department")),
            job=_str(data.get("job")),
        )


@dataclass(frozen=True)
class MovieCandidate:
    """
    A movie's full record as returned by the catalog's detail endpoint,
    including its credits
    """

    tmdb_id: int
    title: str
    original_title: str = ""
    imdb_id: Optional[str] = None
    release_date: Optional[date] = None
    runtime: Optional[int] = None
    overview: str = ""
    popularity: float = 0.0
    vote_count: int = 0
    vote_average: float = 0.0
    poster_path: str = ""
    backdrop_path: str = ""
    adult: bool = False
    cast: tuple[CreditCandidate, ...] = ()
    crew: tuple[CreditCandidate, ...] = ()
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def credits(self):
        return self.cast + self.crew

    @classmethod
    def from_tmdb(cls, data: dict[str, Any]) -> "MovieCandidate":
        tmdb_id = _int(data.get("id"))
        if tmdb_id is None:
            raise ValueError("Movie details without an id")

        external_ids = data.get("external_ids") or {}
        imdb_id = _str(data.get("imdb_id")) or _str(external_ids.get("imdb_id"))

        credits = data.get("credits") or {}
        cast = tuple(
            credit
            for credit in (
                CreditCandidate.from_tmdb(entry, CreditCandidate.CAST)
                for entry in credits.get("cast") or []
            )
            if credit is not None
        )
        crew = tuple(
            credit
            for credit in (
                CreditCandidate.from_tmdb(entry, CreditCandidate.CREW)
                for entry in credits.get("crew") or []
            )
            if credit is not None
        )

        return cls(
            tmdb_id=tmdb_id,
            title=_str(data.get("title")),
            original_title=_str(data.get("original_title")),
            imdb_id=imdb_id or None,
            release_date=_date(data.get("release_date")),
            runtime=_int(data.get("runtime")),
            overview=_str(data.get("overview")),
            popularity=_float(data.get("popularity")),
            vote_count=_int(data.get("vote_count")) or 0,
            vote_average=_float(data.get("vote_average")),
            poster_path=_str(data.get("poster_path")),
            backdrop_path=_str(data.get("backdrop_path")),
            adult=bool(data.get("adult")),
            cast=cast,
            crew=crew,
            raw=data,
        )

    def movie_fields(self) -> dict[str, Any]:
        """
        Fields to write for a full import. Values the provider left empty are
        omitted so they never erase data already stored.
        """
        fields = {
            "title": self.title,
            "original_title": self.original_title,
            "imdb_id": self.imdb_id,
            "release_date": self.release_date,
            "runtime": self.runtime,
            "overview": self.overview,
            "popularity": self.popularity,
            "vote_count": self.vote_count,
            "vote_average": self.vote_average,
            "poster_path": self.poster_path,
            "backdrop_path": self.backdrop_path,
            "tmdb_data": self.raw or None,
        }
        return {key: value for key, value in fields.items() if value not in (None, "")}

    def soft_fields(self) -> dict[str, Any]:
        """Fields kept for a soft import"""
        fields = {
            "title": self.title,
            "imdb_id": self.imdb_id,
            "release_date": self.release_date,
            "popularity": self.popularity,
            "vote_count": self.vote_count,
            "poster_path": self.poster_path,
        }
        return {key: value for key, value in fields.items() if value not in (None, "")}
