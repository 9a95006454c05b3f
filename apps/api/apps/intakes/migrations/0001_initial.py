# Generated migration for intakes app

import uuid
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Intake',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('reference_number', models.CharField(blank=True, help_text='Human readable reference shown to patients and support', max_length=32, null=True, unique=True)),
                ('category', models.CharField(choices=[('medical_certificate', 'Medical certificate'), ('prescription', 'Prescription'), ('consult', 'Consult')], max_length=32)),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('pending_payment', 'Pending payment'), ('paid', 'Paid'), ('in_review', 'In review'), ('pending_info', 'Pending info'), ('approved', 'Approved'), ('declined', 'Declined'), ('awaiting_script', 'Awaiting script'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], db_index=True, default='draft', max_length=32)),
                ('payment_status', models.CharField(choices=[('pending_payment', 'Pending payment'), ('paid', 'Paid'), ('failed', 'Failed'), ('refunded', 'Refunded')], default='pending_payment', max_length=32)),
                ('risk_tier', models.CharField(choices=[('low', 'Low'), ('medium', 'Medium'), ('high', 'High')], default='low', max_length=16)),
                ('requires_live_consult', models.BooleanField(default=False)),
                ('red_flags', models.JSONField(blank=True, default=list, help_text='Emergency symptom markers raised by the questionnaire')),
                ('safety_acknowledged_at', models.DateTimeField(blank=True, null=True)),
                ('safety_acknowledged_by', models.CharField(blank=True, default='', max_length=64)),
                ('clinical_notes', models.TextField(blank=True, default='')),
                ('decline_reason_code', models.CharField(blank=True, choices=[('requires_examination', 'Requires in-person examination'), ('not_telehealth_suitable', 'Not suitable for telehealth'), ('prescribing_guidelines', 'Outside prescribing guidelines'), ('controlled_substance', 'Controlled substance'), ('urgent_care_needed', 'Urgent care needed'), ('insufficient_info', 'Insufficient information'), ('patient_not_eligible', 'Patient not eligible'), ('outside_scope', 'Outside scope of service'), ('other', 'Other')], default='', max_length=32)),
                ('decline_reason_note', models.TextField(blank=True, default='')),
                ('refund_reason', models.TextField(blank=True, default='')),
                ('paid_at', models.DateTimeField(blank=True, null=True)),
                ('reviewed_at', models.DateTimeField(blank=True, null=True)),
                ('reviewed_by', models.CharField(blank=True, default='', max_length=64)),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('declined_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('refunded_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Intake',
                'verbose_name_plural': 'Intakes',
                'db_table': 'intakes',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status', 'created_at'], name='idx_intake_status_created'),
                    models.Index(fields=['payment_status'], name='idx_intake_payment_status'),
                ],
            },
        ),
    ]
