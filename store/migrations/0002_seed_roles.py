from django.db import migrations

ROLE_NAMES = ("superadmin", "admin", "editor")


def seed_roles(apps, schema_editor):
    Role = apps.get_model("store", "Role")
    for name in ROLE_NAMES:
        Role.objects.get_or_create(name=name)


def unseed_roles(apps, schema_editor):
    Role = apps.get_model("store", "Role")
    Role.objects.filter(name__in=ROLE_NAMES, user_roles__isnull=True).delete()


class Migration(migrations.Migration):

    dependencies = [
        ("store", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(seed_roles, unseed_roles),
    ]
