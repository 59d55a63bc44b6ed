from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Company",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "stytch_org_id",
                    models.CharField(
                        db_index=True,
                        help_text="Stytch organization_id, e.g. 'organization-xxx'",
                        max_length=255,
                        unique=True,
                    ),
                ),
                ("name", models.CharField(max_length=255)),
                (
                    "slug",
                    models.SlugField(
                        help_text="URL-safe identifier, e.g. 'acme-corp'",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "subscription_status",
                    models.CharField(
                        choices=[
                            ("active", "Active"),
                            ("trialing", "Trialing"),
                            ("past_due", "Past Due"),
                            ("canceled", "Canceled"),
                            ("incomplete", "Incomplete"),
                            ("incomplete_expired", "Incomplete Expired"),
                            ("unpaid", "Unpaid"),
                        ],
                        db_index=True,
                        default="trialing",
                        max_length=50,
                    ),
                ),
                (
                    "subscription_tier",
                    models.CharField(
                        default="demo",
                        help_text="Stored plan key. The effective plan may be lower.",
                        max_length=50,
                    ),
                ),
                (
                    "seat_limit",
                    models.PositiveIntegerField(
                        blank=True,
                        help_text="Seat limit override. Empty means the plan default applies.",
                        null=True,
                    ),
                ),
                ("current_period_end", models.DateTimeField(blank=True, null=True)),
                ("grace_period_ends_at", models.DateTimeField(blank=True, null=True)),
                ("last_payment_at", models.DateTimeField(blank=True, null=True)),
                ("cancel_at_period_end", models.BooleanField(default=False)),
                (
                    "stripe_customer_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Stripe customer ID, e.g. 'cus_xxx'",
                        max_length=255,
                    ),
                ),
                (
                    "stripe_subscription_id",
                    models.CharField(
                        blank=True,
                        help_text="Stripe subscription ID, e.g. 'sub_xxx'",
                        max_length=255,
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "companies",
                "ordering": ["-created_at"],
            },
        ),
    ]
