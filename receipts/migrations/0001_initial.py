import django.db.models.deletion
import uuid
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('logistics', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='ReceiptVerification',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('image_url', models.URLField(blank=True, max_length=500)),
                ('raw_text', models.TextField(blank=True)),
                ('merchant_name', models.CharField(blank=True, max_length=255)),
                ('location', models.CharField(blank=True, max_length=255)),
                ('extracted_total', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('confidence_score', models.FloatField(blank=True, null=True)),
                ('extracted_items', models.JSONField(blank=True, default=list)),
                ('proof_score', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('item_match_score', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('vendor_match_score', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('image_quality', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('tamper_score', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('status', models.CharField(choices=[('PENDING', 'Pending'), ('APPROVED', 'Approved'), ('FLAGGED', 'Flagged for review'), ('REJECTED', 'Rejected')], default='PENDING', max_length=20, verbose_name='Status')),
                ('locked', models.BooleanField(default=False)),
                ('error_message', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('delivery_request', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='receipt_verifications', to='logistics.deliveryrequest', verbose_name='Delivery request')),
            ],
            options={
                'verbose_name': 'Receipt verification',
                'verbose_name_plural': 'Receipt verifications',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['delivery_request', 'created_at'], name='receipt_request_created_idx'),
                    models.Index(fields=['status'], name='receipt_status_idx'),
                ],
            },
        ),
    ]
