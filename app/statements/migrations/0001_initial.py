import django.db.models.deletion
import django_fsm
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("properties", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Statement",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "owner_payout",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Signed owner payout for the period",
                        max_digits=12,
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="usd",
                        help_text="ISO 4217 currency code (lowercase)",
                        max_length=3,
                    ),
                ),
                (
                    "property_ids",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Listing ids covered by a combined statement",
                    ),
                ),
                ("property_name", models.CharField(blank=True, default="", max_length=255)),
                ("owner_name", models.CharField(blank=True, default="", max_length=255)),
                ("week_start_date", models.DateField(blank=True, null=True)),
                ("week_end_date", models.DateField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[("draft", "Draft"), ("final", "Final")],
                        db_index=True,
                        default="draft",
                        max_length=10,
                    ),
                ),
                (
                    "payout_status",
                    django_fsm.FSMField(
                        choices=[
                            ("missing", "Missing"),
                            ("pending", "Pending"),
                            ("queued", "Queued"),
                            ("paid", "Paid"),
                            ("collected", "Collected"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="missing",
                        help_text="Settlement state (managed by FSM)",
                        max_length=50,
                    ),
                ),
                (
                    "payout_transfer_id",
                    models.CharField(
                        blank=True,
                        help_text="Stripe transfer (tr_xxx) or charge (py_xxx) id",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "stripe_fee",
                    models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True),
                ),
                (
                    "total_transfer_amount",
                    models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True),
                ),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("payout_error", models.TextField(blank=True, null=True)),
                (
                    "payout_attempt",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Advanced after a failure whose outcome at Stripe is known",
                    ),
                ),
                (
                    "group",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="statements",
                        to="properties.listinggroup",
                    ),
                ),
                (
                    "listing",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        db_column="property_id",
                        related_name="statements",
                        to="properties.listing",
                    ),
                ),
            ],
            options={
                "verbose_name": "Statement",
                "verbose_name_plural": "Statements",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["payout_status", "status"],
                        name="statements__payout__6c1f0e_idx",
                    )
                ],
            },
        ),
    ]
