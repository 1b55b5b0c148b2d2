from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("billing", "0001_initial"),
    ]

    operations = [
        migrations.AlterField(
            model_name="payment",
            name="razorpay_payment_id",
            field=models.CharField(
                blank=True,
                help_text="Razorpay payment ID (pay_xxx) - idempotency key when the invoice is absent",
                max_length=255,
                null=True,
                unique=True,
            ),
        ),
    ]
