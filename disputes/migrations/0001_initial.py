import django.db.models.deletion
import uuid
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('logistics', '0001_initial'),
        ('receipts', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='OrderConfirmation',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('items_snapshot', models.JSONField(blank=True, default=list)),
                ('total_snapshot', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('customer_confirmed', models.BooleanField(default=False)),
                ('confirmed_at', models.DateTimeField(blank=True, null=True)),
                ('dispute_status', models.CharField(choices=[('NONE', 'No dispute'), ('DRAFT', 'Draft'), ('OPEN', 'Open'), ('NEEDS_INFO', 'Needs information'), ('RESOLVED_APPROVED', 'Resolved - approved'), ('RESOLVED_DENIED', 'Resolved - denied')], default='NONE', max_length=20, verbose_name='Dispute status')),
                ('disputed_items', models.JSONField(blank=True, default=list)),
                ('dispute_notes', models.TextField(blank=True)),
                ('evidence_urls', models.JSONField(blank=True, default=list)),
                ('disputed_at', models.DateTimeField(blank=True, null=True)),
                ('resolution_notes', models.TextField(blank=True)),
                ('refund_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('resolved_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('customer', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='order_confirmations', to=settings.AUTH_USER_MODEL, verbose_name='Customer')),
                ('delivery_request', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='order_confirmation', to='logistics.deliveryrequest', verbose_name='Delivery request')),
                ('receipt_verification', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='order_confirmations', to='receipts.receiptverification')),
                ('resolved_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='resolved_disputes', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Order confirmation',
                'verbose_name_plural': 'Order confirmations',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['dispute_status'], name='confirmation_dispute_idx'),
                ],
            },
        ),
    ]
