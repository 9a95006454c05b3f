# Generated migration for review_locks app

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='ReviewLock',
            fields=[
                ('request_id', models.UUIDField(primary_key=True, serialize=False)),
                ('holder_id', models.CharField(max_length=64)),
                ('acquired_at', models.DateTimeField()),
                ('expires_at', models.DateTimeField()),
            ],
            options={
                'verbose_name': 'Review Lock',
                'verbose_name_plural': 'Review Locks',
                'db_table': 'review_locks',
                'indexes': [
                    models.Index(fields=['expires_at'], name='idx_review_lock_expires'),
                ],
            },
        ),
    ]
