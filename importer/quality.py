"""
Quality gate deciding how much of a candidate to import.

Movies are judged on four criteria: a poster, enough votes, enough
popularity and a release date. Meeting at least
``quality_movie_min_criteria_full`` of them means a full import (with credits
and enrichment); meeting at least ``quality_movie_min_criteria_soft`` means a
soft import, a minimal row kept so the film is known; anything less, a
missing title or adult content is rejected. People are either imported or
rejected.

Every threshold is read from the configuration store, so operators can tune
the gate while imports run. Decisions depend only on the candidate and the
thresholds.
"""

import enum
from dataclasses import dataclass, field
from logging import getLogger

from configuration.utils import configuration_value_or_default
from filmgraph.logging import FilmgraphLogger
from importer.models import SkippedImport
from prometheus_metrics.models import quality_decisions_total

logger = getLogger(__name__)
structured_logger = FilmgraphLogger.get_logger(__name__)


class QualityOutcome(enum.Enum):
    FULL = "full"
    SOFT = "soft"
    REJECT = "reject"


@dataclass(frozen=True)
class QualityDecision:
    outcome: QualityOutcome
    reason: str = ""
    criteria: dict = field(default_factory=dict)

    @property
    def is_full(self):
        return self.outcome is QualityOutcome.FULL

    @property
    def is_soft(self):
        return self.outcome is QualityOutcome.SOFT

    @property
    def is_reject(self):
        return self.outcome is QualityOutcome.REJECT


@dataclass(frozen=True)
class QualityThresholds:
    min_vote_count: int = 10
    min_popularity: float = 0.5
    movie_min_criteria_full: int = 2
    movie_min_criteria_soft: int = 1
    reject_adult: bool = True
    person_min_popularity: float = 0.5
    key_departments: tuple = ("Acting", "Directing", "Writing")

    CONFIGURATION_KEYS = {
        "min_vote_count": "quality_min_vote_count",
        "min_popularity": "quality_min_popularity",
        "movie_min_criteria_full": "quality_movie_min_criteria_full",
        "movie_min_criteria_soft": "quality_movie_min_criteria_soft",
        "reject_adult": "quality_reject_adult",
        "person_min_popularity": "quality_person_min_popularity",
        "key_departments": "quality_key_departments",
    }

    @classmethod
    def load(cls):
        defaults = cls()
        values = {
            attribute: configuration_value_or_default(key, getattr(defaults, attribute))
            for attribute, key in cls.CONFIGURATION_KEYS.items()
        }
        values["key_departments"] = tuple(values["key_departments"])
        return cls(**values)


class QualityGate:
    def __init__(self, thresholds=None):
        self.thresholds = thresholds or QualityThresholds()

    @classmethod
    def load(cls):
        return cls(QualityThresholds.load())

    def movie_criteria(self, candidate):
        thresholds = self.thresholds
        return {
            "has_poster": bool(candidate.poster_path),
            "has_votes": candidate.vote_count >= thresholds.min_vote_count,
            "has_popularity": candidate.popularity >= thresholds.min_popularity,
            "has_release_date": candidate.release_date is not None,
        }

    def evaluate_movie(self, candidate):
        criteria = self.movie_criteria(candidate)
        met = sum(criteria.values())
        thresholds = self.thresholds

        if not candidate.title:
            decision = QualityDecision(QualityOutcome.REJECT, "missing_title", criteria)
        elif candidate.adult and thresholds.reject_adult:
            decision = QualityDecision(QualityOutcome.REJECT, "adult_content", criteria)
        elif met >= thresholds.movie_min_criteria_full:
            decision = QualityDecision(QualityOutcome.FULL, "", criteria)
        elif met >= thresholds.movie_min_criteria_soft:
            decision = QualityDecision(
                QualityOutcome.SOFT,
                f"only {met} of {len(criteria)} quality criteria met",
                criteria,
            )
        else:
            decision = QualityDecision(
                QualityOutcome.REJECT,
                f"only {met} of {len(criteria)} quality criteria met",
                criteria,
            )

        quality_decisions_total.labels("movie", decision.outcome.value).inc()
        return decision

    def is_key_person(self, person, key_role=False):
        if key_role:
            return True
        return person.known_for_department in self.thresholds.key_departments

    def evaluate_person(self, person, key_role=False):
        """
        People in key roles (significant credits or a key department) need a
        profile image or enough popularity; everybody else needs both.
        """
        criteria = {
            "has_profile": person.has_profile,
            "has_popularity": person.popularity
            >= self.thresholds.person_min_popularity,
        }
        key_person = self.is_key_person(person, key_role)

        if not person.name:
            decision = QualityDecision(QualityOutcome.REJECT, "missing_name", criteria)
        elif key_person and any(criteria.values()):
            decision = QualityDecision(QualityOutcome.FULL, "", criteria)
        elif not key_person and all(criteria.values()):
            decision = QualityDecision(QualityOutcome.FULL, "", criteria)
        elif key_person:
            decision = QualityDecision(
                QualityOutcome.REJECT,
                "key role without profile or popularity",
                criteria,
            )
        else:
            decision = QualityDecision(
                QualityOutcome.REJECT,
                "minor role without both profile and popularity",
                criteria,
            )

        quality_decisions_total.labels("person", decision.outcome.value).inc()
        return decision


def record_skipped_movie(candidate, decision, source=""):
    """Add the audit row for a movie which was soft imported or rejected"""
    structured_logger.info(
        "Movie was not fully imported.",
        event_code="movie_quality_%s" % decision.outcome.value,
        tmdb_id=candidate.tmdb_id,
        title=candidate.title,
        decision_reason=decision.reason,
        source_name=source or None,
    )
    return SkippedImport.objects.create(
        kind=SkippedImport.EntityKind.MOVIE,
        tmdb_id=candidate.tmdb_id,
        imdb_id=candidate.imdb_id or "",
        title=candidate.title[:500],
        decision=decision.outcome.value,
        reason=decision.reason,
        criteria=decision.criteria,
        source=source,
    )


def record_skipped_people(rejected, source=""):
    """
    Add audit rows for people who were rejected, given as (PersonCandidate,
    QualityDecision) pairs
    """
    if not rejected:
        return []
    logger.info("Rejected %s people from %s", len(rejected), source or "import")
    return SkippedImport.objects.bulk_create(
        [
            SkippedImport(
                kind=SkippedImport.EntityKind.PERSON,
                tmdb_id=person.tmdb_id,
                imdb_id=person.imdb_id,
                title=person.name[:500],
                decision=decision.outcome.value,
                reason=decision.reason,
                criteria=decision.criteria,
                source=source,
            )
            for person, decision in rejected
        ]
    )
