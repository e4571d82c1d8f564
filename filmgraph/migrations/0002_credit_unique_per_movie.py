from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("filmgraph", "0001_initial"),
    ]

    operations = [
        migrations.AlterField(
            model_name="credit",
            name="credit_id",
            field=models.CharField(
                help_text="Credit id assigned by the catalog", max_length=64
            ),
        ),
        migrations.AddConstraint(
            model_name="credit",
            constraint=models.UniqueConstraint(
                fields=("movie", "credit_id"), name="unique_credit_per_movie"
            ),
        ),
    ]
