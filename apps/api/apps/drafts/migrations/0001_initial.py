# Generated migration for drafts app

from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('intakes', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Draft',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type', models.CharField(choices=[('clinical_note', 'Clinical note'), ('med_cert', 'Medical certificate')], max_length=32)),
                ('content', models.JSONField(blank=True, default=dict)),
                ('edited_content', models.JSONField(blank=True, help_text='Clinician edits, kept separately from the generated content', null=True)),
                ('status', models.CharField(choices=[('pending', 'Pending generation'), ('ready', 'Ready for review'), ('failed', 'Generation failed')], default='pending', max_length=16)),
                ('model', models.CharField(blank=True, default='', help_text='Generator model name', max_length=128)),
                ('version', models.PositiveIntegerField(default=1)),
                ('source_answers_fingerprint', models.CharField(blank=True, default='', max_length=64)),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('approved_by', models.CharField(blank=True, default='', max_length=64)),
                ('rejected_at', models.DateTimeField(blank=True, null=True)),
                ('rejected_by', models.CharField(blank=True, default='', max_length=64)),
                ('rejection_reason', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('intake', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='drafts', to='intakes.intake')),
            ],
            options={
                'verbose_name': 'Draft',
                'verbose_name_plural': 'Drafts',
                'db_table': 'document_drafts',
                'ordering': ['intake', 'type', '-version'],
                'constraints': [
                    models.UniqueConstraint(fields=('intake', 'type', 'version'), name='uniq_draft_intake_type_version'),
                    models.CheckConstraint(condition=models.Q(('approved_at__isnull', True), ('rejected_at__isnull', True), _connector='OR'), name='draft_not_both_approved_and_rejected'),
                ],
            },
        ),
    ]
