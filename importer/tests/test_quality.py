from django.core.cache import caches
from django.test import TestCase

from configuration.models import Configuration
from importer.candidates import MovieCandidate, PersonCandidate
from importer.models import SkippedImport
from importer.quality import (
    QualityGate,
    QualityOutcome,
    QualityThresholds,
    record_skipped_movie,
    record_skipped_people,
)

from .utils import tmdb_movie


def candidate(**kwargs):
    return MovieCandidate.from_tmdb(tmdb_movie(100, **kwargs))


def person(**kwargs):
    data = {
        "id": 1,
        "name": "Somebody",
        "popularity": 1.0,
        "profile_path": "/p.jpg",
        "known_for_department": "Sound",
    }
    data.update(kwargs)
    return PersonCandidate.from_tmdb(data)


class MovieQualityTests(TestCase):
    def setUp(self):
        self.gate = QualityGate(QualityThresholds())

    def test_complete_record_is_full(self):
        decision = self.gate.evaluate_movie(candidate())
        self.assertIs(decision.outcome, QualityOutcome.FULL)
        self.assertTrue(decision.is_full)
        self.assertTrue(all(decision.criteria.values()))

    def test_two_criteria_are_enough_for_full(self):
        decision = self.gate.evaluate_movie(candidate(poster_path=None, vote_count=3))
        self.assertTrue(decision.is_full)
        self.assertEqual(sum(decision.criteria.values()), 2)

    def test_one_criterion_is_soft(self):
        decision = self.gate.evaluate_movie(
            candidate(poster_path=None, vote_count=0, popularity=0.1)
        )
        self.assertTrue(decision.is_soft)
        self.assertEqual(decision.reason, "only 1 of 4 quality criteria met")
        self.assertEqual(
            decision.criteria,
            {
                "has_poster": False,
                "has_votes": False,
                "has_popularity": False,
                "has_release_date": True,
            },
        )

    def test_no_criteria_is_rejected(self):
        decision = self.gate.evaluate_movie(
            candidate(poster_path=None, vote_count=0, popularity=0, release_date=None)
        )
        self.assertTrue(decision.is_reject)
        self.assertEqual(decision.reason, "only 0 of 4 quality criteria met")

    def test_missing_title_is_rejected(self):
        decision = self.gate.evaluate_movie(candidate(title=""))
        self.assertTrue(decision.is_reject)
        self.assertEqual(decision.reason, "missing_title")

    def test_adult_content(self):
        self.assertEqual(
            self.gate.evaluate_movie(candidate(adult=True)).reason, "adult_content"
        )
        permissive = QualityGate(QualityThresholds(reject_adult=False))
        self.assertTrue(permissive.evaluate_movie(candidate(adult=True)).is_full)

    def test_thresholds_change_decisions(self):
        strict = QualityGate(
            QualityThresholds(min_vote_count=1000, movie_min_criteria_full=4)
        )
        decision = strict.evaluate_movie(candidate())
        self.assertTrue(decision.is_soft)
        self.assertFalse(decision.criteria["has_votes"])

    def test_decisions_are_deterministic(self):
        movie = candidate(poster_path=None)
        self.assertEqual(
            self.gate.evaluate_movie(movie), self.gate.evaluate_movie(movie)
        )


class PersonQualityTests(TestCase):
    def setUp(self):
        self.gate = QualityGate(QualityThresholds())

    def test_minor_role_needs_profile_and_popularity(self):
        self.assertTrue(self.gate.evaluate_person(person()).is_full)
        self.assertTrue(self.gate.evaluate_person(person(profile_path=None)).is_reject)
        self.assertTrue(self.gate.evaluate_person(person(popularity=0.1)).is_reject)

    def test_key_role_needs_either(self):
        decision = self.gate.evaluate_person(person(profile_path=None), key_role=True)
        self.assertTrue(decision.is_full)

        decision = self.gate.evaluate_person(
            person(profile_path=None, popularity=0), key_role=True
        )
        self.assertTrue(decision.is_reject)
        self.assertEqual(decision.reason, "key role without profile or popularity")

    def test_key_department_counts_as_key_role(self):
        actor = person(profile_path=None, known_for_department="Acting")
        self.assertTrue(self.gate.is_key_person(actor))
        self.assertTrue(self.gate.evaluate_person(actor).is_full)

    def test_missing_name_is_rejected(self):
        decision = self.gate.evaluate_person(person(name=""), key_role=True)
        self.assertEqual(decision.reason, "missing_name")


class QualityThresholdsTests(TestCase):
    def setUp(self):
        config_cache = caches["configuration_cache"]
        config_cache.clear()
        self.addCleanup(config_cache.clear)

    def test_defaults_match_seeded_configuration(self):
        self.assertEqual(QualityThresholds.load(), QualityThresholds())

    def test_configuration_overrides_defaults(self):
        Configuration.objects.filter(key="quality_min_vote_count").update(value="250")
        Configuration.objects.filter(key="quality_key_departments").update(
            value='["Directing"]'
        )

        thresholds = QualityThresholds.load()

        self.assertEqual(thresholds.min_vote_count, 250)
        self.assertEqual(thresholds.key_departments, ("Directing",))
        self.assertEqual(QualityGate.load().thresholds, thresholds)


class SkippedImportAuditTests(TestCase):
    def test_record_skipped_movie(self):
        movie = candidate(poster_path=None, vote_count=0, popularity=0.1)
        decision = QualityGate().evaluate_movie(movie)

        skipped = record_skipped_movie(movie, decision, source="tmdb_full")

        self.assertEqual(skipped.kind, SkippedImport.EntityKind.MOVIE)
        self.assertEqual(skipped.decision, "soft")
        self.assertEqual(skipped.tmdb_id, 100)
        self.assertEqual(skipped.imdb_id, "tt0000100")
        self.assertEqual(skipped.source, "tmdb_full")
        self.assertFalse(skipped.criteria["has_poster"])

    def test_record_skipped_people(self):
        gate = QualityGate()
        rejected = [
            (candidate_person, gate.evaluate_person(candidate_person))
            for candidate_person in (
                person(id=1, profile_path=None),
                person(id=2, popularity=0),
            )
        ]

        record_skipped_people(rejected, source="oscars_2024_best-picture")

        rows = SkippedImport.objects.filter(kind=SkippedImport.EntityKind.PERSON)
        self.assertEqual(sorted(rows.values_list("tmdb_id", flat=True)), [1, 2])
        self.assertEqual(set(rows.values_list("decision", flat=True)), {"reject"})
        self.assertEqual(record_skipped_people([]), [])
