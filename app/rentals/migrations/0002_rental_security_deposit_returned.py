from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("rentals", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="rental",
            name="security_deposit_returned",
            field=models.BooleanField(
                default=False,
                help_text="Whether the renter's security deposit has been refunded",
            ),
        ),
        migrations.AddField(
            model_name="rental",
            name="security_deposit_return_date",
            field=models.DateTimeField(
                blank=True,
                help_text="When the security deposit was refunded",
                null=True,
            ),
        ),
    ]
