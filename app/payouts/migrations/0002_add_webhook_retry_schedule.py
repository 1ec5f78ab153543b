"""
Add celery-beat schedule for retrying failed webhook events.

retry_failed_webhooks runs every 10 minutes and re-dispatches FAILED
events that still have attempts left.
"""

from django.db import migrations

TASK_NAME = "Retry Failed Payout Webhooks"


def create_periodic_task(apps, schema_editor):
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    schedule, _ = IntervalSchedule.objects.get_or_create(
        every=10,
        period="minutes",
    )
    PeriodicTask.objects.get_or_create(
        name=TASK_NAME,
        defaults={
            "task": "payouts.tasks.retry_failed_webhooks",
            "interval": schedule,
            "enabled": True,
            "description": "Re-dispatches failed Stripe webhook events.",
        },
    )


def remove_periodic_task(apps, schema_editor):
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")
    PeriodicTask.objects.filter(name=TASK_NAME).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payouts", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_task, remove_periodic_task),
    ]
