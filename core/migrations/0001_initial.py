import core.models
import django.db.models.deletion
import uuid
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='DriverProfile',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('display_name', models.CharField(blank=True, max_length=150)),
                ('tier', models.CharField(choices=[('PROBATION', 'Probation'), ('STANDARD', 'Standard'), ('ELITE', 'Elite'), ('CONCIERGE', 'Concierge')], default='PROBATION', max_length=20, verbose_name='Tier')),
                ('hourly_rate_cents', models.PositiveIntegerField(default=core.models.default_hourly_rate_cents, verbose_name='Hourly rate (cents)')),
                ('bonus_enabled', models.BooleanField(default=True)),
                ('bonus_5star_cents', models.PositiveIntegerField(default=core.models.default_bonus_5star_cents, verbose_name='5-star bonus (cents)')),
                ('performance_metrics', models.JSONField(blank=True, default=dict)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='driver_profile', to=settings.AUTH_USER_MODEL, verbose_name='User')),
            ],
            options={
                'verbose_name': 'Driver profile',
                'verbose_name_plural': 'Driver profiles',
                'ordering': ['-created_at'],
            },
        ),
    ]
