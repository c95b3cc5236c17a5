# Generated migration for InboundDelivery and DeliveryFailure models

from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='InboundDelivery',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('idempotency_key', models.CharField(max_length=255, unique=True)),
                ('event_type', models.CharField(db_index=True, max_length=100)),
                ('source_system', models.CharField(db_index=True, max_length=50)),
                ('raw_payload', models.JSONField()),
                ('source_headers', models.JSONField(blank=True, null=True)),
                ('received_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('processing', 'Processing'), ('processed', 'Processed'), ('failed', 'Failed')], db_index=True, default='pending', max_length=20)),
                ('attempts', models.PositiveIntegerField(default=0)),
                ('error_message', models.TextField(blank=True, null=True)),
                ('claimed_at', models.DateTimeField(blank=True, null=True)),
                ('processed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name_plural': 'inbound deliveries',
                'ordering': ['-received_at'],
            },
        ),
        migrations.CreateModel(
            name='DeliveryFailure',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('event_type', models.CharField(blank=True, max_length=100, null=True)),
                ('payload', models.JSONField()),
                ('headers', models.JSONField(blank=True, null=True)),
                ('error_message', models.TextField()),
                ('stack_trace', models.TextField(blank=True, null=True)),
                ('final_attempts', models.PositiveIntegerField()),
                ('first_failed_at', models.DateTimeField()),
                ('final_failed_at', models.DateTimeField(db_index=True)),
                ('failure_reason', models.CharField(choices=[('processing', 'Processing'), ('timeout', 'Timeout'), ('unknown', 'Unknown')], db_index=True, default='unknown', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('delivery', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='failures', to='webhooks.inbounddelivery')),
            ],
            options={
                'ordering': ['-final_failed_at'],
            },
        ),
        migrations.AddIndex(
            model_name='inbounddelivery',
            index=models.Index(fields=['status', 'attempts'], name='webhooks_status_attempts_idx'),
        ),
        migrations.AddIndex(
            model_name='inbounddelivery',
            index=models.Index(fields=['status', 'claimed_at'], name='webhooks_status_claimed_idx'),
        ),
    ]
