import django.db.models.deletion
import uuid
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        ('logistics', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='DriverEarnings',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('amount_cents', models.PositiveIntegerField(verbose_name='Amount (cents)')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('available', 'Available'), ('paid', 'Paid')], default='pending', max_length=20, verbose_name='Status')),
                ('breakdown', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('driver', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='earnings', to='core.driverprofile', verbose_name='Driver')),
                ('request', models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name='earnings', to='logistics.deliveryrequest', verbose_name='Delivery request')),
            ],
            options={
                'verbose_name': 'Driver earnings',
                'verbose_name_plural': 'Driver earnings',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['driver', 'status'], name='earnings_driver_status_idx'),
                ],
            },
        ),
    ]
