import django.db.models.deletion
import uuid
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='DeliveryRequest',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('status', models.CharField(choices=[('REQUESTED', 'Requested'), ('ASSIGNED', 'Driver assigned'), ('PICKED_UP', 'Picked up'), ('EN_ROUTE', 'En route'), ('DELIVERED', 'Delivered'), ('CANCELED', 'Canceled')], default='REQUESTED', max_length=20, verbose_name='Status')),
                ('service_miles_final', models.PositiveIntegerField(blank=True, null=True, verbose_name='Service Miles (final)')),
                ('wait_miles', models.PositiveIntegerField(default=0, verbose_name='Wait-time Service Miles')),
                ('cash_handling', models.BooleanField(default=False)),
                ('business_account', models.BooleanField(default=False)),
                ('customer_rating', models.PositiveSmallIntegerField(blank=True, null=True, verbose_name='Customer rating (1-5)')),
                ('complaint_flag', models.BooleanField(default=False)),
                ('expected_vendor', models.CharField(blank=True, max_length=255)),
                ('expected_total', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True, verbose_name='Expected receipt total ($)')),
                ('expected_items', models.JSONField(blank=True, default=list)),
                ('receipt_items', models.JSONField(blank=True, default=list)),
                ('locked_at', models.DateTimeField(blank=True, null=True)),
                ('lock_reason', models.CharField(blank=True, max_length=100)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('assigned_at', models.DateTimeField(blank=True, null=True)),
                ('arrived_at', models.DateTimeField(blank=True, null=True)),
                ('departed_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('canceled_at', models.DateTimeField(blank=True, null=True)),
                ('assigned_driver', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assigned_requests', to='core.driverprofile', verbose_name='Assigned driver')),
                ('customer', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='delivery_requests', to=settings.AUTH_USER_MODEL, verbose_name='Customer')),
            ],
            options={
                'verbose_name': 'Delivery request',
                'verbose_name_plural': 'Delivery requests',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status', 'created_at'], name='delivery_status_created_idx'),
                    models.Index(fields=['assigned_driver', 'status'], name='delivery_driver_status_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='DriverAssignment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('assigned_at', models.DateTimeField()),
                ('delivery_request', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='assignments', to='logistics.deliveryrequest')),
                ('driver', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='assignments', to='core.driverprofile')),
            ],
            options={
                'verbose_name': 'Driver assignment',
                'verbose_name_plural': 'Driver assignments',
                'ordering': ['-assigned_at'],
            },
        ),
        migrations.CreateModel(
            name='DriverTimeLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('start_time', models.DateTimeField()),
                ('end_time', models.DateTimeField(blank=True, null=True)),
                ('active_minutes', models.PositiveIntegerField(blank=True, null=True)),
                ('delivery_request', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='time_logs', to='logistics.deliveryrequest')),
                ('driver', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='time_logs', to='core.driverprofile')),
            ],
            options={
                'verbose_name': 'Driver time log',
                'verbose_name_plural': 'Driver time logs',
                'ordering': ['-start_time'],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(end_time__isnull=True), fields=('driver', 'delivery_request'), name='unique_open_time_log_per_driver_request'),
                ],
            },
        ),
    ]
