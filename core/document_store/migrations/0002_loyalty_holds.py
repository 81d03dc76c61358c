from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("document_store", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="loyaltyrecorddocument",
            name="holds",
            field=models.JSONField(
                default=list,
                help_text="Open-order point holds as {order_id, points}.",
            ),
        ),
    ]
