"""
Encrypt Connect account ids at rest.

Existing plaintext ids are copied into stripe_account_id_encrypted with a
keyed lookup digest, then the plaintext column is dropped.
"""

from django.db import migrations, models

from core.encryption import decrypt_optional, encrypt_optional, lookup_digest

MODELS = ["ListingGroup", "Listing"]


def encrypt_account_ids(apps, schema_editor):
    for model_name in MODELS:
        model = apps.get_model("properties", model_name)
        for row in model.objects.exclude(stripe_account_id__isnull=True).exclude(
            stripe_account_id=""
        ):
            row.stripe_account_id_encrypted = encrypt_optional(row.stripe_account_id)
            row.stripe_account_lookup = lookup_digest(row.stripe_account_id)
            row.save(update_fields=["stripe_account_id_encrypted", "stripe_account_lookup"])


def decrypt_account_ids(apps, schema_editor):
    for model_name in MODELS:
        model = apps.get_model("properties", model_name)
        for row in model.objects.exclude(stripe_account_id_encrypted__isnull=True):
            row.stripe_account_id = decrypt_optional(row.stripe_account_id_encrypted)
            row.save(update_fields=["stripe_account_id"])


def account_fields():
    return [
        (
            "stripe_account_id_encrypted",
            models.TextField(
                blank=True,
                help_text="Encrypted Stripe Connect account ID (acct_xxx)",
                null=True,
            ),
        ),
        (
            "stripe_account_lookup",
            models.CharField(
                blank=True,
                db_index=True,
                editable=False,
                max_length=64,
                null=True,
            ),
        ),
    ]


class Migration(migrations.Migration):
    dependencies = [
        ("properties", "0001_initial"),
    ]

    operations = [
        *[
            migrations.AddField(model_name=model_name.lower(), name=name, field=field)
            for model_name in MODELS
            for name, field in account_fields()
        ],
        migrations.RunPython(encrypt_account_ids, decrypt_account_ids),
        *[
            migrations.RemoveField(model_name=model_name.lower(), name="stripe_account_id")
            for model_name in MODELS
        ],
    ]
