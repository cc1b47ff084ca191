"""
Add the Celery Beat schedule for chat housekeeping.

This migration creates a periodic task that purges typing indicators
which expired more than a minute ago.
"""

from django.db import migrations

TASK_NAME = "Chat: Purge Expired Typing Indicators"


def create_periodic_tasks(apps, schema_editor):
    """Create periodic tasks for chat maintenance."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    # Every 60 seconds
    schedule_1min, _ = IntervalSchedule.objects.get_or_create(
        every=60,
        period="seconds",
    )

    PeriodicTask.objects.get_or_create(
        name=TASK_NAME,
        defaults={
            "task": "chat.tasks.purge_expired_typing_indicators",
            "interval": schedule_1min,
            "enabled": True,
            "description": (
                "Deletes typing indicators that expired more than a minute ago. "
                "Readers already ignore expired rows; this only bounds table size."
            ),
        },
    )


def remove_periodic_tasks(apps, schema_editor):
    """Remove chat periodic tasks on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")
    PeriodicTask.objects.filter(name=TASK_NAME).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("chat", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
