from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("payments", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="payment",
            name="refund_in_progress",
            field=models.BooleanField(
                default=False,
                help_text="Set while a refund holds the claim on this payment",
            ),
        ),
    ]
