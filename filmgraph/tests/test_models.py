from datetime import date

from django.db import IntegrityError, transaction
from django.test import TestCase

from filmgraph.models import Collaboration, Credit, ImportStatus
from importer.tests.utils import create_movie, create_person


class MovieTests(TestCase):
    def test_str_includes_release_year(self):
        movie = create_movie(550, title="Fight Club", release_date=date(1999, 10, 15))
        self.assertEqual(str(movie), "Fight Club (1999)")
        self.assertEqual(str(create_movie(551, title="Untitled")), "Untitled")

    def test_is_fully_imported(self):
        self.assertTrue(create_movie(1).is_fully_imported)
        soft = create_movie(2, import_status=ImportStatus.SOFT)
        self.assertFalse(soft.is_fully_imported)

    def test_canonical_sources_default_to_empty(self):
        self.assertEqual(create_movie(1).canonical_sources, {})

    def test_imdb_id_is_unique_but_optional(self):
        create_movie(1, imdb_id=None)
        create_movie(2, imdb_id=None)
        create_movie(3, imdb_id="tt0000003")
        with self.assertRaises(IntegrityError):
            create_movie(4, imdb_id="tt0000003")


class CreditTests(TestCase):
    def test_str_uses_character_or_job(self):
        movie = create_movie(1)
        person = create_person(1)
        cast = Credit.objects.create(
            credit_id="c1",
            movie=movie,
            person=person,
            credit_type=Credit.CreditType.CAST,
            character="Tyler",
        )
        crew = Credit.objects.create(
            credit_id="c2",
            movie=movie,
            person=person,
            credit_type=Credit.CreditType.CREW,
            job="Director",
        )
        self.assertIn("Tyler", str(cast))
        self.assertIn("Director", str(crew))


class CollaborationTests(TestCase):
    def setUp(self):
        self.movie = create_movie(1)
        self.first = create_person(1)
        self.second = create_person(2)

    def test_for_pair_ignores_argument_order(self):
        collaboration = Collaboration.objects.create(
            person_a=self.first,
            person_b=self.second,
            movie=self.movie,
            collaboration_type=Collaboration.CollaborationType.ACTOR_ACTOR,
        )
        self.assertEqual(
            list(Collaboration.for_pair(self.second, self.first)), [collaboration]
        )
        self.assertEqual(
            list(Collaboration.for_pair(self.first, self.second)), [collaboration]
        )

    def test_pair_must_be_ordered(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Collaboration.objects.create(
                    person_a=self.second,
                    person_b=self.first,
                    movie=self.movie,
                    collaboration_type=Collaboration.CollaborationType.ACTOR_ACTOR,
                )

    def test_pair_is_unique_per_movie(self):
        Collaboration.objects.create(
            person_a=self.first,
            person_b=self.second,
            movie=self.movie,
            collaboration_type=Collaboration.CollaborationType.ACTOR_ACTOR,
        )
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Collaboration.objects.create(
                    person_a=self.first,
                    person_b=self.second,
                    movie=self.movie,
                    collaboration_type=Collaboration.CollaborationType.ACTOR_CREW,
                )

        Collaboration.objects.create(
            person_a=self.first,
            person_b=self.second,
            movie=create_movie(2),
            collaboration_type=Collaboration.CollaborationType.ACTOR_ACTOR,
        )
        self.assertEqual(Collaboration.for_pair(self.first, self.second).count(), 2)
