# Generated migration for audit app

import uuid
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='AuditEntry',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('request_id', models.UUIDField(blank=True, db_index=True, help_text='Intake the mutation belongs to', null=True)),
                ('actor_id', models.CharField(help_text='Identity of the acting user', max_length=64)),
                ('action_type', models.CharField(max_length=64)),
                ('previous_state', models.JSONField(blank=True, default=dict)),
                ('new_state', models.JSONField(blank=True, default=dict)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'verbose_name': 'Audit Entry',
                'verbose_name_plural': 'Audit Entries',
                'db_table': 'audit_entries',
                'ordering': ['created_at'],
                'indexes': [
                    models.Index(fields=['created_at'], name='idx_audit_entry_created_at'),
                    models.Index(fields=['actor_id'], name='idx_audit_entry_actor'),
                    models.Index(fields=['action_type'], name='idx_audit_entry_action'),
                ],
            },
        ),
    ]
