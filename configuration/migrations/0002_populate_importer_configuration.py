import json

from django.db import migrations


def populate_configuration(apps, schema_editor):
    Configuration = apps.get_model("configuration", "Configuration")

    initial_data = [
        {
            "key": "quality_min_vote_count",
            "data_type": "number",
            "value": "10",
            "description": "Minimum number of votes for a movie to meet the "
            "'has votes' quality criterion.",
        },
        {
            "key": "quality_min_popularity",
            "data_type": "number",
            "value": "0.5",
            "description": "Minimum catalog popularity for a movie to meet the "
            "'has popularity' quality criterion.",
        },
        {
            "key": "quality_movie_min_criteria_full",
            "data_type": "number",
            "value": "2",
            "description": "Number of the four movie quality criteria (poster, "
            "votes, popularity, release date) a movie must meet to be fully "
            "imported with credits and enrichment.",
        },
        {
            "key": "quality_movie_min_criteria_soft",
            "data_type": "number",
            "value": "1",
            "description": "Movies meeting fewer quality criteria than this are "
            "rejected. Movies between this and the full threshold are stored "
            "without credits or enrichment.",
        },
        {
            "key": "quality_reject_adult",
            "data_type": "boolean",
            "value": "true",
            "description": "Reject movies the catalog flags as adult content.",
        },
        {
            "key": "quality_person_min_popularity",
            "data_type": "number",
            "value": "0.5",
            "description": "Minimum popularity for a person to meet the "
            "'has popularity' quality criterion.",
        },
        {
            "key": "quality_key_departments",
            "data_type": "json",
            "value": json.dumps(["Acting", "Directing", "Writing"]),
            "description": "People known for one of these departments only need "
            "a profile image or enough popularity to be imported.",
        },
        {
            "key": "collaboration_max_cast_order",
            "data_type": "number",
            "value": "20",
            "description": "Only the first N billed cast members of a movie are "
            "used to build collaborations and count as key roles.",
        },
        {
            "key": "collaboration_key_crew_jobs",
            "data_type": "json",
            "value": json.dumps(
                [
                    "Director",
                    "Producer",
                    "Executive Producer",
                    "Screenplay",
                    "Writer",
                    "Director of Photography",
                    "Original Music Composer",
                    "Editor",
                ]
            ),
            "description": "Crew jobs which are used to build collaborations and "
            "count as key roles.",
        },
    ]

    for entry in initial_data:
        Configuration.objects.update_or_create(key=entry["key"], defaults=entry)


def revert_populate_configuration(apps, schema_editor):
    # Operators may have tuned these values, so they are left in place
    pass


class Migration(migrations.Migration):

    dependencies = [
        ("configuration", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(populate_configuration, revert_populate_configuration),
    ]
