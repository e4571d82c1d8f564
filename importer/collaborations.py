"""
Derives the collaboration edges between people credited on the same film.

Only significant credits take part: cast billed above
``collaboration_max_cast_order`` and crew whose job is listed in
``collaboration_key_crew_jobs``. A film with hundreds of credits therefore
still produces a bounded number of pairs.
"""

from itertools import combinations
from logging import getLogger

from django.db import transaction
from django.db.models import Q

from configuration.utils import configuration_value_or_default
from filmgraph.models import Collaboration, Credit

logger = getLogger(__name__)

DEFAULT_MAX_CAST_ORDER = 20
DEFAULT_KEY_CREW_JOBS = (
    "Director",
    "Producer",
    "Executive Producer",
    "Screenplay",
    "Writer",
    "Director of Photography",
    "Original Music Composer",
    "Editor",
)

DIRECTOR = "director"
ACTOR = "actor"
CREW = "crew"

# Lower index wins when a person holds several roles, and orders the two
# halves of a collaboration type
ROLE_ORDER = (ACTOR, DIRECTOR, CREW)
ROLE_PRIORITY = (DIRECTOR, ACTOR, CREW)


def collaboration_bounds():
    max_cast_order = configuration_value_or_default(
        "collaboration_max_cast_order", DEFAULT_MAX_CAST_ORDER
    )
    key_crew_jobs = configuration_value_or_default(
        "collaboration_key_crew_jobs", DEFAULT_KEY_CREW_JOBS
    )
    return int(max_cast_order), tuple(key_crew_jobs)


def credit_role(credit_type, job):
    if credit_type == Credit.CreditType.CREW and job == "Director":
        return DIRECTOR
    if credit_type == Credit.CreditType.CAST:
        return ACTOR
    return CREW


def collaboration_type(first_role, second_role):
    first_role, second_role = sorted((first_role, second_role), key=ROLE_ORDER.index)
    return f"{first_role}-{second_role}"


def significant_roles(movie_id, max_cast_order, key_crew_jobs):
    """Map each significant person on the film to their main role"""
    credits = Credit.objects.filter(movie_id=movie_id).filter(
        Q(credit_type=Credit.CreditType.CAST, cast_order__lt=max_cast_order)
        | Q(credit_type=Credit.CreditType.CREW, job__in=key_crew_jobs)
    )

    roles = {}
    for person_id, credit_type, job in credits.values_list(
        "person_id", "credit_type", "job"
    ):
        role = credit_role(credit_type, job)
        current = roles.get(person_id)
        if current is None or ROLE_PRIORITY.index(role) < ROLE_PRIORITY.index(
            current
        ):
            roles[person_id] = role
    return roles


def recompute_collaborations(movie_id, max_cast_order=None, key_crew_jobs=None):
    """
    Replace the film's collaboration rows with those implied by its current
    credits and return how many there are.

    Rows for pairs which are no longer significant are deleted; the rest are
    upserted on (person_a, person_b, movie).
    """
    if max_cast_order is None or key_crew_jobs is None:
        default_order, default_jobs = collaboration_bounds()
        max_cast_order = default_order if max_cast_order is None else max_cast_order
        key_crew_jobs = default_jobs if key_crew_jobs is None else key_crew_jobs

    roles = significant_roles(movie_id, max_cast_order, key_crew_jobs)

    wanted = {
        (person_a, person_b): collaboration_type(roles[person_a], roles[person_b])
        for person_a, person_b in combinations(sorted(roles), 2)
    }

    with transaction.atomic():
        existing = Collaboration.objects.filter(movie_id=movie_id)
        stale = [
            pk
            for pk, person_a, person_b in existing.values_list(
                "pk", "person_a_id", "person_b_id"
            )
            if (person_a, person_b) not in wanted
        ]
        if stale:
            Collaboration.objects.filter(pk__in=stale).delete()

        Collaboration.objects.bulk_create(
            [
                Collaboration(
                    person_a_id=person_a,
                    person_b_id=person_b,
                    movie_id=movie_id,
                    collaboration_type=kind,
                )
                for (person_a, person_b), kind in wanted.items()
            ],
            batch_size=500,
            update_conflicts=True,
            unique_fields=["person_a", "person_b", "movie"],
            update_fields=["collaboration_type"],
        )

    logger.debug(
        "Movie %s has %s collaborations between %s people",
        movie_id,
        len(wanted),
        len(roles),
    )
    return len(wanted)
